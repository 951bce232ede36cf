"""Live-reload script injected into proxied HTML responses.

The script opens an ``EventSource`` on the notification endpoint and
reloads the page a fixed delay after any message arrives. Its SHA-256
fingerprint is what the CSP rewriter whitelists, so text and fingerprint
are always built together.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

_SCRIPT_TEMPLATE = """\
<script>
  const livereload = new EventSource("http://localhost:{port}/");
  livereload.onmessage = () => {{
    setTimeout(() => {{
      location.reload();
    }}, {delay});
  }};
</script>"""


def _fingerprint(content: bytes) -> str:
    """Base64 SHA-256 digest, as used in a CSP ``'sha256-...'`` source."""
    return base64.b64encode(hashlib.sha256(content).digest()).decode("ascii")


@dataclass(frozen=True, slots=True)
class InjectedScript:
    """The reload ``<script>`` and its CSP fingerprint.

    Attributes:
        text: Script markup appended to HTML bodies.
        content: ``text`` encoded as UTF-8, the bytes actually written.
        fingerprint: Base64 SHA-256 digest of ``content``.

    """

    text: str
    content: bytes
    fingerprint: str

    @classmethod
    def build(cls, livereload_port: int, delay_ms: int) -> InjectedScript:
        """Render the script for a notification port and reload delay."""
        text = _SCRIPT_TEMPLATE.format(port=livereload_port, delay=delay_ms)
        content = text.encode("utf-8")
        return cls(text=text, content=content, fingerprint=_fingerprint(content))

    @property
    def hash_source(self) -> str:
        """CSP hash-source expression allowing this script to run."""
        return f"'sha256-{self.fingerprint}'"

    def __len__(self) -> int:
        return len(self.content)
