import csv
import io

from django.http import HttpResponse

UTF8_BOM = "\ufeff"


def build_csv(rows, headers):
    """Render ``rows`` (dicts) as CSV text using ``headers`` as ``{key: label}``.

    Column order follows ``headers``; keys missing from a row render empty.
    Values containing the delimiter, quotes or line breaks are quoted.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(list(headers.values()))
    for row in rows:
        writer.writerow(["" if row.get(key) is None else row.get(key) for key in headers])
    return buffer.getvalue()


def csv_attachment(rows, headers, filename):
    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{filename}.csv"'
    response.write(UTF8_BOM + build_csv(rows, headers))
    return response
