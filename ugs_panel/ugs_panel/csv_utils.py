"""Чтение CSV-файлов, загруженных администратором."""
import csv
import io
import logging

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE = 5 * 1024 * 1024


class CsvUploadError(Exception):
    """Файл не удалось прочитать как CSV (maps to HTTP 400)."""
    pass


def read_csv_upload(uploaded_file, required_columns=()):
    """
    Читает загруженный CSV (UTF-8, BOM допускается).

    Возвращает список пар (row_number, row), где row_number - номер строки
    в файле с учётом заголовка (первая строка данных = 2). Пустые строки
    пропускаются, значения очищаются от пробелов по краям.

    Raises:
        CsvUploadError: нет файла, не UTF-8, нет обязательных колонок
    """
    if uploaded_file is None:
        raise CsvUploadError('ファイルが選択されていません')
    if uploaded_file.size > MAX_UPLOAD_SIZE:
        raise CsvUploadError('ファイルサイズが大きすぎます（最大5MB）')

    raw = uploaded_file.read()
    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        raise CsvUploadError('CSVファイルはUTF-8で保存してください')

    reader = csv.DictReader(io.StringIO(text))
    header = [h.strip() for h in (reader.fieldnames or [])]
    missing = [col for col in required_columns if col not in header]
    if missing:
        raise CsvUploadError(f'必須カラムが不足しています: {", ".join(missing)}')

    rows = []
    for index, row in enumerate(reader):
        cleaned = {
            (key or '').strip(): (value or '').strip() if isinstance(value, str) else ''
            for key, value in row.items()
        }
        if not any(cleaned.values()):
            continue
        rows.append((index + 2, cleaned))

    logger.info(f'CSV parsed: {len(rows)} rows, columns={header}')
    return rows
