"""
Роли пользователей и статусы членства.

Внешние системы (CSV, старые выгрузки, Stripe metadata) присылают роли в
верхнем регистре ('FP', 'MANAGER'); в БД храним нижний регистр.
"""

ROLE_MEMBER = 'member'
ROLE_FP = 'fp'
ROLE_MANAGER = 'manager'
ROLE_ADMIN = 'admin'

ROLE_CHOICES = (
    (ROLE_MEMBER, 'UGS会員'),
    (ROLE_FP, 'FPエイド'),
    (ROLE_MANAGER, 'マネージャー'),
    (ROLE_ADMIN, '管理者'),
)

ROLE_HIERARCHY = {
    ROLE_MEMBER: 1,
    ROLE_FP: 2,
    ROLE_MANAGER: 3,
    ROLE_ADMIN: 4,
}

# Роли, которым положены ежемесячные вознаграждения
COMPENSATION_ROLES = (ROLE_FP, ROLE_MANAGER, ROLE_ADMIN)


MEMBERSHIP_PENDING = 'pending'
MEMBERSHIP_ACTIVE = 'active'
MEMBERSHIP_PAST_DUE = 'past_due'
MEMBERSHIP_DELINQUENT = 'delinquent'
MEMBERSHIP_SUSPENDED = 'suspended'
MEMBERSHIP_CANCELLATION_PENDING = 'cancellation_pending'
MEMBERSHIP_CANCELED = 'canceled'
MEMBERSHIP_TERMINATED = 'terminated'
MEMBERSHIP_EXPIRED = 'expired'

MEMBERSHIP_STATUS_CHOICES = (
    (MEMBERSHIP_PENDING, '仮登録'),
    (MEMBERSHIP_ACTIVE, '有効'),
    (MEMBERSHIP_PAST_DUE, '支払い遅延'),
    (MEMBERSHIP_DELINQUENT, '滞納'),
    (MEMBERSHIP_SUSPENDED, '休会中'),
    (MEMBERSHIP_CANCELLATION_PENDING, '退会予定'),
    (MEMBERSHIP_CANCELED, '退会済み'),
    (MEMBERSHIP_TERMINATED, '強制解約'),
    (MEMBERSHIP_EXPIRED, '期限切れ'),
)


def normalize_role(value):
    """
    Приводит роль к каноническому виду: 'FP' / ' fp ' -> 'fp'.

    Raises:
        ValueError: неизвестная роль
    """
    role = (value or '').strip().lower()
    if role not in ROLE_HIERARCHY:
        raise ValueError(f'Unknown role: {value!r}')
    return role


def role_at_least(role, minimum):
    """True, если ``role`` не ниже ``minimum`` по иерархии."""
    return ROLE_HIERARCHY.get(role, 0) >= ROLE_HIERARCHY[minimum]
