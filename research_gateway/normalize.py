def normalize(raw: str) -> str:
    """Undo the backend's value syntax: one layer of (...) then one layer of "...".

    Never raises; unwrapped input comes back trimmed.
    """
    text = (raw or "").strip()
    if len(text) >= 2 and text[0] == "(" and text[-1] == ")":
        text = text[1:-1].strip()
        # dfx prints single-value tuples as ("x",)
        if text.endswith(","):
            text = text[:-1].rstrip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1]
    return text
