"""
Tests for password sources.
"""

import io
import os

import pytest

from gitfoil.core.errors import PasswordProviderError
from gitfoil.core.keys.password_provider import (
    EXIT_INPUT_ERROR,
    EXIT_INTERRUPTED,
    PasswordSource,
    SourcePasswordProvider,
    StaticPasswordProvider,
    strip_trailing_newline,
)


@pytest.mark.parametrize(
    "value, expected",
    [("pw\n", "pw"), ("pw\r\n", "pw"), ("pw\r", "pw"), ("pw", "pw"), ("pw\n\n", "pw\n")],
)
def test_strip_trailing_newline(value, expected):
    assert strip_trailing_newline(value) == expected


class TestStatic:

    def test_returns_password(self):
        assert StaticPasswordProvider("secret pass").obtain("prompt") == "secret pass"

    def test_none_is_input_error(self):
        with pytest.raises(PasswordProviderError) as exc:
            StaticPasswordProvider(None).obtain("prompt")
        assert exc.value.exit_code == EXIT_INPUT_ERROR

    def test_repr_hides_password(self):
        assert "secret" not in repr(StaticPasswordProvider("secret pass"))


class TestTerminal:

    def test_prompt_passed_through(self):
        prompts = []

        def prompt(text):
            prompts.append(text)
            return "typed password"

        provider = SourcePasswordProvider(prompt_func=prompt)
        assert provider.obtain("GitFoil password: ") == "typed password"
        assert prompts == ["GitFoil password: "]

    def test_interrupt(self):
        def prompt(text):
            raise KeyboardInterrupt

        with pytest.raises(PasswordProviderError) as exc:
            SourcePasswordProvider(prompt_func=prompt).obtain("p")
        assert exc.value.exit_code == EXIT_INTERRUPTED

    def test_eof(self):
        def prompt(text):
            raise EOFError

        with pytest.raises(PasswordProviderError) as exc:
            SourcePasswordProvider(prompt_func=prompt).obtain("p")
        assert exc.value.exit_code == EXIT_INPUT_ERROR

    def test_whitespace_rejected(self):
        provider = SourcePasswordProvider(prompt_func=lambda text: " padded ")
        with pytest.raises(PasswordProviderError):
            provider.obtain("p")


class TestStdin:

    def test_first_line_only(self):
        provider = SourcePasswordProvider(stdin=io.StringIO("first line\nsecond line\n"))
        assert provider.obtain("p", PasswordSource.STDIN) == "first line"

    @pytest.mark.parametrize("content", ["", "\n", " leading\n", "trailing \n", "\tboth\t\n"])
    def test_rejected(self, content):
        provider = SourcePasswordProvider(stdin=io.StringIO(content))
        with pytest.raises(PasswordProviderError) as exc:
            provider.obtain("p", PasswordSource.STDIN)
        assert exc.value.exit_code == EXIT_INPUT_ERROR
        assert exc.value.message.startswith("Error:")

    def test_inner_spaces_allowed(self):
        provider = SourcePasswordProvider(stdin=io.StringIO("correct horse battery\n"))
        assert provider.obtain("p", PasswordSource.STDIN) == "correct horse battery"


class TestFile:

    def test_reads_first_line(self, tmp_path):
        path = tmp_path / "pw.txt"
        path.write_text("from file\nignored\n", encoding="utf-8")
        assert SourcePasswordProvider(file_path=path).obtain("p", PasswordSource.FILE) == "from file"

    def test_missing_file(self, tmp_path):
        provider = SourcePasswordProvider(file_path=tmp_path / "missing")
        with pytest.raises(PasswordProviderError) as exc:
            provider.obtain("p", PasswordSource.FILE)
        assert exc.value.exit_code == EXIT_INPUT_ERROR

    def test_no_path(self):
        with pytest.raises(PasswordProviderError):
            SourcePasswordProvider().obtain("p", PasswordSource.FILE)


class TestDescriptor:

    def test_reads_pipe_and_leaves_it_open(self):
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, b"piped secret\n")
            os.close(write_fd)
            provider = SourcePasswordProvider(fd=read_fd)
            assert provider.obtain("p", PasswordSource.FD) == "piped secret"
            os.fstat(read_fd)
        finally:
            os.close(read_fd)

    def test_invalid_descriptor(self):
        with pytest.raises(PasswordProviderError) as exc:
            SourcePasswordProvider(fd=-1).obtain("p", PasswordSource.FD)
        assert exc.value.exit_code == EXIT_INPUT_ERROR
