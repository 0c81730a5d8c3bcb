"""
Импорт договоров и детализации вознаграждений из CSV (админка).

Оба импорта работают в два шага:
1. preview - разбор файла, проверка строк, разделение на to_add / to_update;
2. confirm - повторная проверка присланных строк и запись в одной транзакции.
"""
import logging
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.member_ids import is_valid_member_id

from .calculator import is_valid_month
from .models import Compensation, Contract

User = get_user_model()
logger = logging.getLogger(__name__)

CONTRACT_COLUMNS = ('userId', 'contractNumber', 'productName', 'amount', 'signedAt', 'status')
CONTRACT_STATUSES = {
    'ACTIVE': Contract.STATUS_ACTIVE,
    'CANCELLED': Contract.STATUS_CANCELLED,
    'EXPIRED': Contract.STATUS_EXPIRED,
}

COMPENSATION_COLUMNS = ('会員番号', '対象月', '税込報酬', '源泉徴収額', '振込手数料')
AMOUNT_STRIP_CHARS = (',', ' ', '¥', '￥', '　')
# Верхняя граница IntegerField
MAX_AMOUNT = 2147483647


class RowError(Exception):
    """Строка не прошла проверку; сообщение уходит в ответ как есть."""
    pass


def parse_amount(value, label):
    """'¥1,234' -> 1234. Отрицательные, дробные и нечисловые значения - RowError."""
    text = str(value if value is not None else '').strip()
    for char in AMOUNT_STRIP_CHARS:
        text = text.replace(char, '')
    if not text:
        raise RowError(f'{label}が空です')
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise RowError(f'{label}が数値ではありません: {value}')
    if not number.is_finite():
        raise RowError(f'{label}が数値ではありません: {value}')
    if number < 0:
        raise RowError(f'{label}は0以上で入力してください')
    if number != number.to_integral_value():
        raise RowError(f'{label}は整数で入力してください: {value}')
    if number > MAX_AMOUNT:
        raise RowError(f'{label}が大きすぎます: {value}')
    return int(number)


def _find_user(identifier):
    identifier = str(identifier or '').strip()
    if not identifier:
        raise RowError('ユーザーIDが空です')
    lookup = Q(member_id=identifier.upper())
    if identifier.isdigit():
        lookup |= Q(pk=int(identifier))
    user = User.objects.filter(lookup).first()
    if user is None:
        raise RowError(f'ユーザーID {identifier} が存在しません')
    return user


def _parse_signed_at(value):
    text = str(value or '').strip()
    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        raise RowError(f'契約日の形式が不正です: {text}')
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


# --- Договоры ---

def clean_contract_row(row):
    """
    Проверяет одну строку договора.

    ``row`` - либо строка CSV (userId, contractNumber, ...), либо элемент
    preview (user_id, contract_number, ...).
    """
    def pick(csv_key, snake_key):
        return row.get(csv_key, row.get(snake_key, ''))

    user = _find_user(pick('userId', 'user_id'))
    contract_number = str(pick('contractNumber', 'contract_number') or '').strip()
    if not contract_number:
        raise RowError('契約番号が空です')
    product_name = str(pick('productName', 'product_name') or '').strip()
    if not product_name:
        raise RowError('商品名が空です')
    amount = parse_amount(pick('amount', 'amount'), '保険料')
    signed_at = _parse_signed_at(pick('signedAt', 'signed_at'))

    raw_status = str(pick('status', 'status') or '').strip().upper()
    if raw_status not in CONTRACT_STATUSES:
        raise RowError(f'ステータスが不正です（ACTIVE/CANCELLED/EXPIREDのいずれか）: {raw_status}')

    return {
        'user_id': user.id,
        'user_name': user.name,
        'user_email': user.email,
        'contract_number': contract_number,
        'product_name': product_name,
        'amount': amount,
        'signed_at': signed_at.isoformat(),
        'status': raw_status,
    }


def preview_contracts(rows):
    """rows: [(row_number, row)] из read_csv_upload."""
    to_add, to_update, errors = [], [], []
    existing = set(Contract.objects.values_list('contract_number', flat=True))

    for row_number, row in rows:
        try:
            cleaned = clean_contract_row(row)
        except RowError as e:
            errors.append({'row_number': row_number, 'error': str(e), 'row': row})
            continue
        if cleaned['contract_number'] in existing:
            to_update.append(cleaned)
        else:
            to_add.append(cleaned)

    return {
        'to_add': to_add,
        'to_update': to_update,
        'errors': errors,
        'summary': {
            'to_add_count': len(to_add),
            'to_update_count': len(to_update),
            'error_count': len(errors),
        },
    }


@transaction.atomic
def confirm_contracts(items):
    added, updated = 0, 0
    errors = []
    for index, item in enumerate(items):
        try:
            cleaned = clean_contract_row(item)
        except RowError as e:
            errors.append({'index': index, 'error': str(e)})
            continue

        values = {
            'user_id': cleaned['user_id'],
            'product_name': cleaned['product_name'],
            'amount': cleaned['amount'],
            'signed_at': date_parser.isoparse(cleaned['signed_at']),
            'status': CONTRACT_STATUSES[cleaned['status']],
        }
        contract = Contract.objects.filter(contract_number=cleaned['contract_number']).first()
        if contract is None:
            Contract.objects.create(
                contract_number=cleaned['contract_number'],
                contract_type=Contract.TYPE_INSURANCE,
                reward_amount=None,
                **values
            )
            added += 1
        else:
            for field, value in values.items():
                setattr(contract, field, value)
            contract.save()
            updated += 1

    logger.info(f'Contracts import: added={added} updated={updated} failed={len(errors)}')
    return {'added': added, 'updated': updated, 'failed': len(errors), 'errors': errors}


# --- Детализация вознаграждений ---

def clean_compensation_row(row):
    def pick(csv_key, snake_key):
        return row.get(csv_key, row.get(snake_key, ''))

    member_id = str(pick('会員番号', 'member_id') or '').strip().upper()
    if not is_valid_member_id(member_id):
        raise RowError(f'会員番号の形式が正しくありません: {member_id}')
    user = User.objects.filter(member_id=member_id).first()
    if user is None:
        raise RowError(f'会員番号 {member_id} のユーザーが存在しません')

    month = str(pick('対象月', 'month') or '').strip()
    if not is_valid_month(month):
        raise RowError(f'対象月の形式が正しくありません（YYYY-MM）: {month}')

    gross = parse_amount(pick('税込報酬', 'gross_amount'), '税込報酬')
    withholding = parse_amount(pick('源泉徴収額', 'withholding_tax'), '源泉徴収額')
    fee = parse_amount(pick('振込手数料', 'transfer_fee'), '振込手数料')
    if withholding + fee > gross:
        raise RowError('源泉徴収額と振込手数料の合計が税込報酬を超えています')

    return {
        'user_id': user.id,
        'user_name': user.name,
        'member_id': member_id,
        'month': month,
        'gross_amount': gross,
        'withholding_tax': withholding,
        'transfer_fee': fee,
        'net_amount': gross - withholding - fee,
    }


def preview_compensations(rows):
    to_add, to_update, errors = [], [], []
    for row_number, row in rows:
        try:
            cleaned = clean_compensation_row(row)
        except RowError as e:
            errors.append({'row_number': row_number, 'error': str(e), 'row': row})
            continue
        if Compensation.objects.filter(user_id=cleaned['user_id'], month=cleaned['month']).exists():
            to_update.append(cleaned)
        else:
            to_add.append(cleaned)

    return {
        'to_add': to_add,
        'to_update': to_update,
        'errors': errors,
        'summary': {
            'to_add_count': len(to_add),
            'to_update_count': len(to_update),
            'error_count': len(errors),
        },
    }


@transaction.atomic
def confirm_compensations(items):
    added, updated = 0, 0
    errors = []
    for index, item in enumerate(items):
        try:
            cleaned = clean_compensation_row(item)
        except RowError as e:
            errors.append({'index': index, 'error': str(e)})
            continue

        values = {
            'amount': cleaned['gross_amount'],
            'gross_amount': cleaned['gross_amount'],
            'withholding_tax': cleaned['withholding_tax'],
            'transfer_fee': cleaned['transfer_fee'],
            'net_amount': cleaned['net_amount'],
        }
        compensation = Compensation.objects.filter(user_id=cleaned['user_id'], month=cleaned['month']).first()
        if compensation is None:
            user = User.objects.get(pk=cleaned['user_id'])
            Compensation.objects.create(
                user=user,
                month=cleaned['month'],
                earned_as_role=user.role,
                status=Compensation.STATUS_CONFIRMED,
                **values
            )
            added += 1
        else:
            # Статус существующей записи не меняем
            for field, value in values.items():
                setattr(compensation, field, value)
            compensation.save()
            updated += 1

    logger.info(f'Compensation details import: added={added} updated={updated} failed={len(errors)}')
    return {'added': added, 'updated': updated, 'failed': len(errors), 'errors': errors}
