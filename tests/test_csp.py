"""Tests for reload_proxy.proxy.csp — Content-Security-Policy rewriting."""

from __future__ import annotations

from reload_proxy.proxy.csp import CSP_HEADERS, rewrite_csp
from tests.conftest import REFERENCE_FINGERPRINT

FP = REFERENCE_FINGERPRINT
HASH = f"'sha256-{FP}'"


class TestWithoutScriptSrc:
    """A policy without script-src gets one appended."""

    def test_default_src_only(self) -> None:
        assert rewrite_csp("default-src 'self'", FP) == (
            f"default-src 'self'; script-src {HASH}"
        )

    def test_other_directives_kept_verbatim(self) -> None:
        policy = "default-src 'self';  img-src  *; style-src 'self'"
        assert rewrite_csp(policy, FP) == f"{policy}; script-src {HASH}"

    def test_empty_policy_does_not_raise(self) -> None:
        assert rewrite_csp("", FP) == f"; script-src {HASH}"

    def test_garbage_does_not_raise(self) -> None:
        assert rewrite_csp(";;;", FP) == f";;;; script-src {HASH}"


class TestWithScriptSrc:
    """An existing script-src gets the hash appended in place."""

    def test_appends_to_script_src_only(self) -> None:
        policy = (
            "default-src 'self'; script-src 'self' https://js.example.com; "
            "style-src 'self' https://css.example.com"
        )
        assert rewrite_csp(policy, FP) == (
            "default-src 'self'; "
            f"script-src 'self' https://js.example.com {HASH}; "
            "style-src 'self' https://css.example.com"
        )

    def test_script_src_first(self) -> None:
        assert rewrite_csp("script-src 'self'; object-src 'none'", FP) == (
            f"script-src 'self' {HASH}; object-src 'none'"
        )

    def test_script_src_without_values(self) -> None:
        assert rewrite_csp("default-src 'self'; script-src", FP) == (
            f"default-src 'self'; script-src {HASH}"
        )

    def test_extra_whitespace(self) -> None:
        policy = "default-src 'self';   script-src   'self'    https://a.example  ;img-src *"
        assert rewrite_csp(policy, FP) == (
            f"default-src 'self';   script-src 'self' https://a.example {HASH}  ;img-src *"
        )


class TestUnsafeInline:
    """'unsafe-inline' already lets the script run."""

    def test_policy_unchanged(self) -> None:
        policy = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; "
            "style-src 'self' https://css.example.com"
        )
        assert rewrite_csp(policy, FP) == policy

    def test_unsafe_inline_elsewhere_does_not_count(self) -> None:
        policy = "style-src 'unsafe-inline'; script-src 'self'"
        assert rewrite_csp(policy, FP) == (
            f"style-src 'unsafe-inline'; script-src 'self' {HASH}"
        )


class TestPurity:
    """rewrite_csp is a pure function."""

    def test_idempotent_on_same_input(self) -> None:
        policy = "default-src 'self'; script-src 'self'"
        assert rewrite_csp(policy, FP) == rewrite_csp(policy, FP)

    def test_header_names(self) -> None:
        assert CSP_HEADERS == (
            "Content-Security-Policy",
            "Content-Security-Policy-Report-Only",
        )
