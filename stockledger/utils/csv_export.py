"""Streamed CSV downloads."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from flask import Response, stream_with_context

from stockledger.utils.csv_codec import write_csv


def csv_download(
    rows: Iterable[Mapping[str, object]],
    columns: Sequence[tuple[str, str]],
    filename: str,
) -> Response:
    """Stream ``rows`` as an attachment, one CSV line per row.

    ``columns`` pairs each row key with its header label; keys missing from a
    row are written as empty cells.
    """

    def generate():
        yield write_csv([[label for _, label in columns]])
        for row in rows:
            yield write_csv([[row.get(key) for key, _ in columns]])

    response = Response(stream_with_context(generate()), mimetype="text/csv")
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
