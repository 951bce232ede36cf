"""Content-Security-Policy rewriting for the injected reload script.

A page served with a CSP would refuse to run an inline script it does not
know about. The rewriter adds the script's hash to ``script-src`` (or adds
a ``script-src`` directive) while leaving every other directive byte for
byte as the upstream sent it.
"""

from __future__ import annotations

# Header names whose values are rewritten, compared case-insensitively.
CSP_HEADERS = (
    "Content-Security-Policy",
    "Content-Security-Policy-Report-Only",
)

_SCRIPT_SRC = "script-src"
_UNSAFE_INLINE = "'unsafe-inline'"


def _find_script_src(policy: str) -> str | None:
    """Return the first trimmed directive whose name starts with ``script-src``."""
    for directive in policy.split(";"):
        directive = directive.strip()
        if directive.startswith(_SCRIPT_SRC):
            return directive
    return None


def rewrite_csp(policy: str, fingerprint: str) -> str:
    """Allow the script with *fingerprint* to run under *policy*.

    - No ``script-src`` directive: append ``; script-src 'sha256-<fp>'``.
    - ``script-src`` lists ``'unsafe-inline'``: the policy is returned as is.
    - Otherwise the hash source is appended to ``script-src``'s values and
      only that directive's text is replaced.  The replacement joins the
      directive name and its values with single spaces, so runs of
      whitespace inside ``script-src`` are collapsed; every other
      directive, and the separators around it, stay byte for byte.

    Never raises; any string ends in one of the three cases above.

    """
    hash_source = f"'sha256-{fingerprint}'"
    directive = _find_script_src(policy)
    if directive is None:
        return f"{policy}; {_SCRIPT_SRC} {hash_source}"

    name, *values = directive.split()
    if _UNSAFE_INLINE in values:
        return policy

    rewritten = " ".join([name, *values, hash_source])
    return policy.replace(directive, rewritten, 1)
