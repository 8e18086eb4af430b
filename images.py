"""Turn an image file into the opaque string stored on products, banners and
payment proofs (a base64 data URL)."""
import base64
import mimetypes


def encode_image(path: str) -> str:
    mime = mimetypes.guess_type(path)[0] or "application/octet-stream"
    with open(path, "rb") as fh:
        payload = base64.b64encode(fh.read()).decode("ascii")
    return f"data:{mime};base64,{payload}"
