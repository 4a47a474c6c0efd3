from __future__ import annotations

import html

from tagmark.services.common import epoch_seconds


EXPORT_FOLDER_NAME = "Tagmark Exports"


def build_bookmarks_html(bookmarks) -> str:
    lines = [
        "<!DOCTYPE NETSCAPE-Bookmark-file-1>",
        "<!-- This is an automatically generated file.",
        "     It will be read and overwritten.",
        "     DO NOT EDIT! -->",
        '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">',
        "<TITLE>Bookmarks</TITLE>",
        "<H1>Bookmarks</H1>",
        "<DL><p>",
        f"    <DT><H3>{html.escape(EXPORT_FOLDER_NAME)}</H3>",
        "    <DL><p>",
    ]
    for bookmark in bookmarks:
        url = bookmark.get("url") or ""
        title = bookmark.get("title") or ""
        add_date = epoch_seconds(bookmark.get("createdAt"))
        lines.append(
            f'        <DT><A HREF="{html.escape(url, quote=True)}" '
            f'ADD_DATE="{add_date}">{html.escape(title)}</A>'
        )
    lines.append("    </DL><p>")
    lines.append("</DL><p>")
    return "\n".join(lines) + "\n"
