"""Encrypted page assembly for pagestitch.

Builds a self-contained HTML document holding a sealed page, the shared
decrypt form and an inline WebCrypto routine that mirrors crypto.py exactly.
No secret is kept anywhere but in the reader's head.
"""

import logging
import re

from bs4 import BeautifulSoup

from .composer import extract_body
from .crypto import ITERATIONS, KEY_LENGTH, SealedPage, open_sealed, seal
from .errors import CryptoError, StructuralError

logger = logging.getLogger(__name__)

FORM_ID = "decrypt-form"
PASSWORD_ID = "decrypt-password"
ERROR_ID = "decrypt-error"
PAYLOAD_ID = "encrypted-payload"

# Element ids the inline routine looks up
REQUIRED_IDS = (FORM_ID, PASSWORD_ID, ERROR_ID)

# Built-in decrypt.html, laid out like header.html and footer.html.
# Only its <body> content ends up in encrypted pages.
DEFAULT_DECRYPT_PAGE = """<!doctype html>
<html>
<head></head>
<body>
<div style="display:flex;justify-content:center;align-items:center;min-height:100vh;font-family:sans-serif">
  <form id="decrypt-form" style="text-align:center">
    <h2>This page is encrypted</h2>
    <p>Enter the passphrase to view this page.</p>
    <input id="decrypt-password" type="password" placeholder="Passphrase" autofocus
      style="padding:8px 12px;font-size:16px;border:1px solid #ccc;border-radius:4px;margin-right:8px">
    <button type="submit" style="padding:8px 16px;font-size:16px;cursor:pointer;border:1px solid #ccc;border-radius:4px;background:#f5f5f5">Decrypt</button>
    <p id="decrypt-error" style="color:red;display:none">Wrong passphrase. Please try again.</p>
  </form>
</div>
</body>
</html>"""

_CONSTANT_RE = re.compile(r'var (SALT|IV) = "([A-Za-z0-9+/=]*)";')


def load_decrypt_form(template: str | None = None) -> str:
    """Return the decrypt-form fragment shared by every encrypted page.

    Args:
        template: Contents of the site's decrypt.html, or None for the
            built-in default. Only the body content is used when the
            document has one.

    Returns:
        The fragment HTML.
    """
    if template is None:
        template = DEFAULT_DECRYPT_PAGE

    try:
        form_html = extract_body(template).strip()
    except StructuralError as e:
        raise StructuralError(f"Decrypt form: {e}") from e

    soup = BeautifulSoup(form_html, "html.parser")
    missing = [element_id for element_id in REQUIRED_IDS if soup.find(id=element_id) is None]
    if missing:
        logger.warning(
            "Decrypt form is missing element(s) %s; encrypted pages may not open",
            ", ".join(f"#{element_id}" for element_id in missing),
        )
    return form_html


def _get_javascript(sealed: SealedPage) -> str:
    """Generate the inline decrypt routine for one sealed page."""
    return f"""
(function() {{
  'use strict';

  var SALT = "{sealed.salt_b64}";
  var IV = "{sealed.nonce_b64}";
  var ITERATIONS = {ITERATIONS};

  function b64ToBytes(b64) {{
    var bin = atob(b64);
    var bytes = new Uint8Array(bin.length);
    for (var i = 0; i < bin.length; i++) bytes[i] = bin.charCodeAt(i);
    return bytes;
  }}

  async function decrypt(passphrase) {{
    var salt = b64ToBytes(SALT);
    var iv = b64ToBytes(IV);
    var ct = b64ToBytes(document.getElementById('{PAYLOAD_ID}').textContent.trim());

    var encoder = new TextEncoder();
    var keyMaterial = await crypto.subtle.importKey(
      'raw',
      encoder.encode(passphrase),
      'PBKDF2',
      false,
      ['deriveKey']
    );
    var key = await crypto.subtle.deriveKey(
      {{ name: 'PBKDF2', salt: salt, iterations: ITERATIONS, hash: 'SHA-256' }},
      keyMaterial,
      {{ name: 'AES-GCM', length: {KEY_LENGTH * 8} }},
      false,
      ['decrypt']
    );

    // Throws on a wrong passphrase or tampered data (GCM tag check)
    var decrypted = await crypto.subtle.decrypt({{ name: 'AES-GCM', iv: iv }}, key, ct);
    return new TextDecoder().decode(decrypted);
  }}

  function showError() {{
    var el = document.getElementById('{ERROR_ID}');
    if (el) {{
      el.style.display = 'block';
    }} else {{
      alert('Wrong passphrase. Please try again.');
    }}
  }}

  var form = document.getElementById('{FORM_ID}');
  if (form) {{
    form.addEventListener('submit', async function(e) {{
      e.preventDefault();
      var input = document.getElementById('{PASSWORD_ID}');
      try {{
        var html = await decrypt(input ? input.value : '');
        document.open();
        document.write(html);
        document.close();
      }} catch (err) {{
        showError();
      }}
    }});
  }}
}})();
"""


def build_encrypted_page(sealed: SealedPage, form_html: str) -> str:
    """Assemble the encrypted document.

    Args:
        sealed: Salt, nonce and ciphertext from crypto.seal().
        form_html: Decrypt-form fragment from load_decrypt_form().

    Returns:
        Complete HTML string.
    """
    return f"""<!doctype html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Encrypted Page</title>
</head>
<body>
{form_html.strip()}
<script id="{PAYLOAD_ID}" type="application/octet-stream">{sealed.ciphertext_b64}</script>
<script data-pagestitch-runtime>{_get_javascript(sealed)}</script>
</body>
</html>"""


def encrypt_page(html: str, passphrase: str, form_html: str) -> str:
    """Seal rendered HTML and wrap it in a decryptable document."""
    sealed = seal(html, passphrase)
    return build_encrypted_page(sealed, form_html)


def read_encrypted_page(html: str) -> SealedPage:
    """Recover the sealed payload from an encrypted document.

    Raises:
        CryptoError: If the document is not an encrypted page.
    """
    soup = BeautifulSoup(html, "html.parser")

    payload = soup.find("script", id=PAYLOAD_ID)
    if payload is None:
        raise CryptoError(f"No #{PAYLOAD_ID} block found")

    runtime = soup.find("script", attrs={"data-pagestitch-runtime": True})
    if runtime is None:
        raise CryptoError("No decrypt routine found")

    constants = dict(_CONSTANT_RE.findall(runtime.get_text()))
    if "SALT" not in constants or "IV" not in constants:
        raise CryptoError("Decrypt routine is missing SALT or IV")

    return SealedPage.from_b64(
        salt=constants["SALT"],
        nonce=constants["IV"],
        ciphertext=payload.get_text().strip(),
    )


def decrypt_page(html: str, passphrase: str) -> str:
    """Open an encrypted document and return the original HTML."""
    return open_sealed(read_encrypted_page(html), passphrase)
