"""
Генерация публичных идентификаторов участника: номер участника и реферальный код.
"""
import logging
import re
import secrets

from django.db import IntegrityError, transaction

logger = logging.getLogger(__name__)

MEMBER_ID_PREFIX = 'UGS'
MEMBER_ID_DIGITS = 7
MEMBER_ID_RE = re.compile(r'^UGS\d{7}$')
MAX_ASSIGN_ATTEMPTS = 3

# Без I, O, 0, 1 - их путают при вводе с бумажной визитки
REFERRAL_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
REFERRAL_CODE_LENGTH = 8


class MemberIdGenerationError(Exception):
    """Не удалось выдать уникальный номер участника."""
    pass


def is_valid_member_id(value):
    return bool(value) and bool(MEMBER_ID_RE.match(value))


def extract_member_number(value):
    """'UGS0000042' -> 42; None для невалидных значений."""
    if not is_valid_member_id(value):
        return None
    return int(value[len(MEMBER_ID_PREFIX):])


def format_member_id(number):
    return f'{MEMBER_ID_PREFIX}{number:0{MEMBER_ID_DIGITS}d}'


def generate_member_id():
    """Следующий номер: максимальный существующий + 1 (или UGS0000001)."""
    from .models import CustomUser

    existing = CustomUser.objects.filter(
        member_id__startswith=MEMBER_ID_PREFIX
    ).values_list('member_id', flat=True)

    max_number = 0
    for member_id in existing:
        number = extract_member_number(member_id)
        if number is not None and number > max_number:
            max_number = number
    return format_member_id(max_number + 1)


def assign_member_id(user):
    """
    Выдаёт пользователю номер участника, если его ещё нет.

    Параллельные регистрации могут получить одинаковый номер, поэтому запись
    идёт в savepoint и при конфликте уникальности повторяется.

    Raises:
        MemberIdGenerationError: все попытки упёрлись в IntegrityError
    """
    if user.member_id:
        return user.member_id

    for attempt in range(1, MAX_ASSIGN_ATTEMPTS + 1):
        candidate = generate_member_id()
        try:
            with transaction.atomic():
                user.member_id = candidate
                user.save(update_fields=['member_id', 'updated_at'])
            logger.info(f'Member ID assigned: user={user.id} member_id={candidate}')
            return candidate
        except IntegrityError:
            logger.warning(f'Member ID collision on {candidate}, attempt {attempt}/{MAX_ASSIGN_ATTEMPTS}')
            user.member_id = None

    raise MemberIdGenerationError(f'Could not assign member id to user {user.id}')


def generate_referral_code():
    """Случайный код из 8 символов, уникальный среди пользователей."""
    from .models import CustomUser

    while True:
        code = ''.join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
        if not CustomUser.objects.filter(referral_code=code).exists():
            return code


def ensure_referral_code(user):
    if not user.referral_code:
        user.referral_code = generate_referral_code()
        user.save(update_fields=['referral_code', 'updated_at'])
    return user.referral_code
