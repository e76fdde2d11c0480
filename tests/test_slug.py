import pytest

from sugar.utils.slug import parse_thread_param, slugify_title, thread_param


class TestThreadParam:

    def test_brackets_become_parens_and_punctuation_collapses(self):
        assert thread_param(7, "Hello [World]!!") == "7;hello-(world)!"

    def test_work_safe_urls_emit_bare_id(self):
        assert thread_param(7, "Hello [World]!!", work_safe_urls=True) == "7"

    def test_braces_and_runs_of_unsafe_characters(self):
        assert slugify_title("  {News}  &  views ?? ") == "(news)-&-views"

    def test_leading_and_trailing_hyphens_trimmed(self):
        assert slugify_title("--- ok ---") == "ok"

    def test_title_without_safe_characters_falls_back_to_id(self):
        assert thread_param(3, "???") == "3"

    def test_unicode_word_characters_are_kept(self):
        assert slugify_title("Ærlig talt") == "ærlig-talt"


class TestParseThreadParam:

    @pytest.mark.parametrize("param", ["7", "7;hello-(world)!", " 7;x"])
    def test_accepts_both_forms(self, param):
        assert parse_thread_param(param) == 7

    @pytest.mark.parametrize("param", ["", "abc", ";7", "x;7"])
    def test_rejects_garbage(self, param):
        with pytest.raises(ValueError):
            parse_thread_param(param)
