from configsync.namespaces import CONTENT_KEY
from configsync.types import NamespaceContent

_ESCAPES = {
    "\\": "\\\\",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
    "\f": "\\f",
    "=": "\\=",
    ":": "\\:",
    "#": "\\#",
    "!": "\\!",
}


def escape_properties(value: str, is_key: bool = False) -> str:
    out = []
    for i, char in enumerate(value):
        if char == " " and (is_key or i == 0):
            out.append("\\ ")
        else:
            out.append(_ESCAPES.get(char, char))
    return "".join(out)


def render_properties(content: NamespaceContent) -> bytes:
    lines = [
        f"{escape_properties(key, is_key=True)}={escape_properties(value)}\n"
        for key, value in content.configurations.items()
    ]
    return "".join(lines).encode("utf-8")


def render(content: NamespaceContent) -> bytes:
    """
    On disk representation of a namespace, picked by its suffix
    """
    if content.format.is_properties:
        return render_properties(content)
    return content.configurations.get(CONTENT_KEY, "").encode("utf-8")
