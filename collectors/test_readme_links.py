"""
Tests for README discovery and link extraction.
"""

import pytest

from collectors.readme_links import (
    extract_repository_links,
    find_readme,
    is_awesome_list,
)


PAGE_URL = "https://github.com/sindresorhus/awesome-nodejs"


def make_page(readme_html: str, wrapper: str = "article") -> str:
    if wrapper == "react-partial":
        body = f'<react-partial><article class="markdown-body">{readme_html}</article></react-partial>'
    elif wrapper == "readme":
        body = f'<div id="readme"><article class="markdown-body entry-content">{readme_html}</article></div>'
    else:
        body = f'<article class="markdown-body">{readme_html}</article>'
    return f"<html><body><nav><a href='/topics/nav'>nav</a></nav>{body}</body></html>"


class TestFindReadme:

    @pytest.mark.parametrize("wrapper", ["article", "react-partial", "readme"])
    def test_finds_rendered_readme(self, wrapper):
        readme = find_readme(make_page("<h1>Awesome Node.js</h1>", wrapper=wrapper))

        assert readme is not None
        assert readme.name == "article"
        assert "Awesome Node.js" in readme.get_text()

    def test_missing_readme(self):
        assert find_readme("<html><body><p>No readme here</p></body></html>") is None


class TestIsAwesomeList:

    def test_case_insensitive(self):
        assert is_awesome_list("<h1>AWESOME Python</h1>") is True

    def test_plain_readme(self):
        assert is_awesome_list("<h1>Widget</h1><p>A small library.</p>") is False

    def test_accepts_tag(self):
        readme = find_readme(make_page("<p>A curated list of awesome things</p>"))
        assert is_awesome_list(readme) is True


class TestExtractRepositoryLinks:

    def test_filters_and_resolves_links(self):
        readme = """
        <h1>Awesome</h1>
        <ul>
          <li><a href="https://github.com/acme/widget">widget</a></li>
          <li><a href="/other/thing">thing</a></li>
          <li><a href="https://github.com/topics/cli">topic</a></li>
          <li><a href="https://github.com/search?q=awesome">search</a></li>
          <li><a href="https://example.com/docs">docs</a></li>
          <li><a href="#contents">contents</a></li>
          <li><a>no href</a></li>
          <li><a href="https://github.com/acme/widget">widget again</a></li>
        </ul>
        """

        links = extract_repository_links(readme, PAGE_URL)

        assert links == [
            "https://github.com/acme/widget",
            "https://github.com/other/thing",
            "https://github.com/sindresorhus/awesome-nodejs#contents",
            "https://github.com/acme/widget",
        ]

    def test_only_searches_readme(self):
        """Links outside the README element are ignored"""
        readme = find_readme(make_page('<a href="https://github.com/acme/widget">w</a>'))

        assert extract_repository_links(readme, PAGE_URL) == ["https://github.com/acme/widget"]

    def test_custom_host(self):
        readme = '<a href="https://git.example/acme/widget">w</a><a href="https://github.com/a/b">b</a>'

        links = extract_repository_links(readme, "https://git.example/list", host="git.example")

        assert links == ["https://git.example/acme/widget"]

    def test_no_links(self):
        assert extract_repository_links("<p>Awesome, but empty</p>", PAGE_URL) == []
