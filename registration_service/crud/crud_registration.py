# registration_service/crud/crud_registration.py
import logging
import secrets
import string
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .base import CRUDBase
from registration_service.core.config import settings
from registration_service.core.exceptions import (
    ConstraintViolation,
    DuplicateRegistration,
)
from registration_service.models.category import Category
from registration_service.models.registration import (
    IndividualRegistration,
    Participant,
    PaymentStatus,
    Registration,
    RegistrationCategory,
)
from registration_service.schemas.registration import (
    IndividualRegistrationCreate,
    SchoolRegistrationCreate,
)

logger = logging.getLogger(__name__)

# Admin list filters, named the way the admin dashboard names them
STATUS_FILTERS = ("verified", "pending", "unpaid", "failed")

# Fresh tracking numbers tried when the unique index rejects an insert
TRACKING_NUMBER_ATTEMPTS = 5


def generate_tracking_number(length: Optional[int] = None) -> str:
    """Generates a random tracking number, e.g. CHAF-7KQ2XA."""
    chars = string.ascii_uppercase + string.digits
    length = length or settings.TRACKING_NUMBER_LENGTH
    suffix = "".join(secrets.choice(chars) for _ in range(length))
    return f"{settings.TRACKING_NUMBER_PREFIX}-{suffix}".upper()


def normalize_tracking_number(value: str) -> str:
    return value.strip().upper()


def tracking_number_exists(db: Session, tracking_number: str) -> bool:
    """Tracking numbers are unique across both registration tables."""
    for model in (IndividualRegistration, Registration):
        if (
            db.query(model.id)
            .filter(model.tracking_number == tracking_number)
            .first()
            is not None
        ):
            return True
    return False


def new_tracking_number(db: Session) -> str:
    while True:
        tracking_number = generate_tracking_number()
        if not tracking_number_exists(db, tracking_number):
            return tracking_number


def _retry_tracking_number(db: Session, tracking_number: str, attempt: int) -> bool:
    """After a failed insert, True when the tracking number was taken concurrently."""
    if attempt >= TRACKING_NUMBER_ATTEMPTS or not tracking_number_exists(db, tracking_number):
        return False
    logger.warning(f"Tracking number {tracking_number} was taken concurrently, drawing another")
    return True


class CRUDRegistrationBase(CRUDBase):
    """Lookups and status transitions shared by both registration kinds."""

    def get_by_tracking_number(self, db: Session, *, tracking_number: str):
        return (
            db.query(self.model)
            .filter(self.model.tracking_number == normalize_tracking_number(tracking_number))
            .first()
        )

    def compare_and_set(
        self,
        db: Session,
        *,
        registration_id: str,
        from_statuses: Iterable[str],
        values: Dict[str, Any],
    ) -> bool:
        """
        Conditionally move a registration out of one of `from_statuses`.

        A single UPDATE guarded on the current status. Returns True when this
        call performed the transition. Does not commit, so the caller can
        write related rows in the same transaction.
        """
        result = db.execute(
            update(self.model)
            .where(
                and_(
                    self.model.id == registration_id,
                    self.model.payment_status.in_(list(from_statuses)),
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _apply_status_filter(self, query, status_filter: Optional[str]):
        if status_filter == "verified":
            return query.filter(
                self.model.payment_status == PaymentStatus.PAID,
                self.model.admin_verified.is_(True),
            )
        if status_filter == "pending":
            return query.filter(
                self.model.payment_status == PaymentStatus.AWAITING_VERIFICATION
            )
        if status_filter == "unpaid":
            return query.filter(self.model.payment_status == PaymentStatus.PENDING)
        if status_filter == "failed":
            return query.filter(self.model.payment_status == PaymentStatus.FAILED)
        return query

    def _search_columns(self) -> List[Any]:
        return [self.model.tracking_number]

    def search(
        self,
        db: Session,
        *,
        status_filter: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[list, int]:
        query = self._apply_status_filter(db.query(self.model), status_filter)

        if search:
            search_term = f"%{search.strip()}%"
            query = query.filter(
                or_(*[column.ilike(search_term) for column in self._search_columns()])
            )

        total = query.count()
        items = (
            query.order_by(self.model.created_at.desc()).offset(skip).limit(limit).all()
        )
        return items, total

    def get_all_for_export(self, db: Session, *, status_filter: Optional[str] = None) -> list:
        query = self._apply_status_filter(db.query(self.model), status_filter)
        return query.order_by(self.model.created_at).all()

    def count_by_status(self, db: Session) -> Dict[str, int]:
        rows = (
            db.query(self.model.payment_status, func.count(self.model.id))
            .group_by(self.model.payment_status)
            .all()
        )
        counts = {status: 0 for status in PaymentStatus.ALL}
        counts.update({status: count for status, count in rows})
        return counts

    def count_verified(self, db: Session) -> int:
        return self._apply_status_filter(db.query(self.model), "verified").count()

    def verified_revenue(self, db: Session) -> int:
        total = (
            self._apply_status_filter(db.query(func.sum(self.model.amount_due)), "verified")
            .scalar()
        )
        return int(total or 0)


class CRUDIndividualRegistration(CRUDRegistrationBase):
    def get_by_phone(self, db: Session, *, phone_number: str) -> Optional[IndividualRegistration]:
        return (
            db.query(self.model).filter(self.model.phone_number == phone_number).first()
        )

    def _search_columns(self) -> List[Any]:
        return [
            self.model.tracking_number,
            self.model.full_name,
            self.model.phone_number,
            self.model.email,
        ]

    def create_with_tracking(
        self, db: Session, *, obj_in: IndividualRegistrationCreate
    ) -> IndividualRegistration:
        """
        Creates an individual registration in `pending` at the fixed fee.
        One registration per phone number.
        """
        existing = self.get_by_phone(db, phone_number=obj_in.phone_number)
        if existing:
            raise DuplicateRegistration(
                f"Phone number {obj_in.phone_number} is already registered "
                f"under tracking number {existing.tracking_number}",
                tracking_number=existing.tracking_number,
            )

        fields = dict(
            full_name=obj_in.full_name,
            phone_number=obj_in.phone_number,
            email=obj_in.email,
            gender=obj_in.gender.value if obj_in.gender else None,
            state=obj_in.state,
            lga=obj_in.lga,
            comments=obj_in.comments,
            amount_due=settings.INDIVIDUAL_REGISTRATION_FEE,
            payment_status=PaymentStatus.PENDING,
            admin_verified=False,
        )
        for attempt in range(1, TRACKING_NUMBER_ATTEMPTS + 1):
            tracking_number = new_tracking_number(db)
            db_obj = self.model(tracking_number=tracking_number, **fields)
            db.add(db_obj)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Lost a race on the phone number with a concurrent submission
                existing = self.get_by_phone(db, phone_number=obj_in.phone_number)
                if existing:
                    raise DuplicateRegistration(
                        f"Phone number {obj_in.phone_number} is already registered "
                        f"under tracking number {existing.tracking_number}",
                        tracking_number=existing.tracking_number,
                    )
                if _retry_tracking_number(db, tracking_number, attempt):
                    continue
                raise
            break
        db.refresh(db_obj)
        logger.info(
            f"Individual registration {db_obj.tracking_number} created "
            f"(amount={db_obj.amount_due})"
        )
        return db_obj


class CRUDSchoolRegistration(CRUDRegistrationBase):
    def get_by_phone(self, db: Session, *, phone_number: str) -> List[Registration]:
        return (
            db.query(self.model)
            .filter(self.model.contact_phone == phone_number)
            .order_by(self.model.created_at)
            .all()
        )

    def _search_columns(self) -> List[Any]:
        return [
            self.model.tracking_number,
            self.model.school_name,
            self.model.contact_name,
            self.model.contact_phone,
        ]

    def claim_companion_slot(
        self, db: Session, *, registration_id: str, category_id: str, cap: int
    ) -> bool:
        """
        Take one companion slot for a selected category while fewer than `cap`
        are taken. A single guarded UPDATE, not committed, so the ticket insert
        lands in the same transaction.
        """
        result = db.execute(
            update(RegistrationCategory)
            .where(
                and_(
                    RegistrationCategory.registration_id == registration_id,
                    RegistrationCategory.category_id == category_id,
                    RegistrationCategory.companions_issued < cap,
                )
            )
            .values(companions_issued=RegistrationCategory.companions_issued + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def validate_selection(
        self, db: Session, *, obj_in: SchoolRegistrationCreate
    ) -> Dict[str, Category]:
        """
        Checks categories and participant caps. Raises before anything is
        written so a rejected submission leaves no rows behind.
        """
        categories = {
            c.id: c for c in db.query(Category).filter(Category.id.in_(obj_in.category_ids)).all()
        }
        for index, category_id in enumerate(obj_in.category_ids):
            if category_id not in categories:
                raise ConstraintViolation(
                    f"Unknown category '{category_id}'",
                    field=f"category_ids[{index}]",
                )

        counts = Counter()
        for index, participant in enumerate(obj_in.participants):
            if participant.category_id not in categories:
                raise ConstraintViolation(
                    f"Participant '{participant.name}' is entered for category "
                    f"'{participant.category_id}' which was not selected",
                    field=f"participants[{index}].category_id",
                )
            counts[participant.category_id] += 1

        for category_id, count in counts.items():
            category = categories[category_id]
            if count > category.max_participants:
                raise ConstraintViolation(
                    f"Category '{category.name}' allows at most "
                    f"{category.max_participants} participants, got {count}",
                    field="participants",
                    category_id=category_id,
                )
        return categories

    def create_with_participants(
        self, db: Session, *, obj_in: SchoolRegistrationCreate
    ) -> Registration:
        """
        Creates the registration, its category selections and its participants
        in one transaction. Amount due is the sum of the selected category fees.
        """
        categories = self.validate_selection(db, obj_in=obj_in)
        amount_due = sum(categories[category_id].fee for category_id in obj_in.category_ids)

        fields = dict(
            school_name=obj_in.school_name.strip(),
            contact_name=obj_in.contact_name.strip(),
            contact_phone=obj_in.contact_phone,
            contact_email=obj_in.contact_email,
            comments=obj_in.comments,
            amount_due=amount_due,
            payment_status=PaymentStatus.PENDING,
            admin_verified=False,
        )
        for attempt in range(1, TRACKING_NUMBER_ATTEMPTS + 1):
            tracking_number = new_tracking_number(db)
            db_obj = self.model(tracking_number=tracking_number, **fields)
            try:
                db.add(db_obj)
                db.flush()
                for category_id in obj_in.category_ids:
                    db.add(
                        RegistrationCategory(
                            registration_id=db_obj.id,
                            category_id=category_id,
                            fee=categories[category_id].fee,
                        )
                    )
                for participant in obj_in.participants:
                    db.add(
                        Participant(
                            registration_id=db_obj.id,
                            category_id=participant.category_id,
                            name=participant.name.strip(),
                            class_name=participant.class_name,
                        )
                    )
                db.commit()
            except Exception as exc:
                db.rollback()
                if isinstance(exc, IntegrityError) and _retry_tracking_number(
                    db, tracking_number, attempt
                ):
                    continue
                logger.exception(
                    f"School registration for '{obj_in.school_name}' rolled back"
                )
                raise
            break
        db.refresh(db_obj)
        logger.info(
            f"School registration {db_obj.tracking_number} created "
            f"({len(obj_in.participants)} participants, amount={amount_due})"
        )
        return db_obj


individual_registration = CRUDIndividualRegistration(IndividualRegistration)
school_registration = CRUDSchoolRegistration(Registration)
