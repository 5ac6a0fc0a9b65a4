import re
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from modules.forms.exceptions import ConcurrencyConflict, SubmissionNotFound
from modules.forms.models.amendment import Amendment
from modules.forms.models.sequence import SubmissionSequence
from modules.forms.models.signature import Signature
from modules.forms.models.submission import Submission, SubmissionStatus
from settings import SEQUENCE_RETRY_LIMIT
from utils.logger import setup_logger

logger = setup_logger(__name__)

FLEET_SCOPE = "FLEET"
SCOPE_ABBR_LENGTH = 5
SEQUENCE_WIDTH = 5


def scope_abbreviation(scope_name: Optional[str]) -> str:
    """First five alphanumerics of the vessel/scope name, upper-cased."""
    abbr = re.sub(r"[^A-Z0-9]", "", (scope_name or "").upper())[:SCOPE_ABBR_LENGTH]
    return abbr or FLEET_SCOPE


def format_submission_number(template_code: str, scope_name: Optional[str], year: int, sequence: int) -> str:
    return f"{template_code}-{scope_abbreviation(scope_name)}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_submission_number(number: str) -> Tuple[str, str, int, int]:
    """Split a submission number into (template_code, scope_abbr, year, sequence)."""
    parts = number.rsplit("-", 3)
    if len(parts) != 4 or not parts[2].isdigit() or not parts[3].isdigit():
        raise ValueError(f"Malformed submission number: {number!r}")
    code, abbr, year, sequence = parts
    return code, abbr, int(year), int(sequence)


class SubmissionStore:
    """Request-scoped persistence for submissions, signatures and amendments."""

    def __init__(self, db_session: Session):
        self.db = db_session

    # ------------------------------------------------------------------ submissions
    def get(self, submission_id: int) -> Submission:
        submission = self.db.get(Submission, submission_id)
        if submission is None:
            raise SubmissionNotFound(f"Submission {submission_id} not found")
        return submission

    def find_by_number(self, submission_number: str) -> Optional[Submission]:
        return (
            self.db.query(Submission)
            .filter(Submission.submission_number == submission_number)
            .one_or_none()
        )

    def list_by_status(self, company_id: int, status: SubmissionStatus) -> List[Submission]:
        return (
            self.db.query(Submission)
            .filter(Submission.company_id == company_id, Submission.status == status)
            .order_by(Submission.submitted_at.asc(), Submission.id.asc())
            .all()
        )

    def add(self, entity) -> None:
        self.db.add(entity)

    # ------------------------------------------------------------------ numbering
    def next_sequence(self, company_id: int, template_id: int, year: int) -> int:
        """Atomically allocate the next number for (company, template, year)."""
        for attempt in range(1, SEQUENCE_RETRY_LIMIT + 1):
            allocated = self.db.execute(
                update(SubmissionSequence)
                .where(
                    SubmissionSequence.company_id == company_id,
                    SubmissionSequence.template_id == template_id,
                    SubmissionSequence.year == year,
                )
                .values(last_value=SubmissionSequence.last_value + 1)
                .returning(SubmissionSequence.last_value)
                .execution_options(synchronize_session=False)
            ).scalar_one_or_none()
            if allocated is not None:
                return allocated

            # First submission of the year: create the counter row
            self.db.add(SubmissionSequence(
                company_id=company_id, template_id=template_id, year=year, last_value=1
            ))
            try:
                self.db.flush()
                return 1
            except IntegrityError:
                # Another request created it first; retry the increment
                self.db.rollback()
                logger.debug(f"Sequence row race for template {template_id}/{year}, attempt {attempt}")

        raise ConcurrencyConflict("Could not allocate a submission number")

    def allocate_number(self, company_id: int, template_id: int, template_code: str,
                        scope_name: Optional[str], year: Optional[int] = None) -> str:
        year = year or datetime.utcnow().year
        sequence = self.next_sequence(company_id, template_id, year)
        return format_submission_number(template_code, scope_name, year, sequence)

    # ------------------------------------------------------------------ signatures
    def active_signatures(self, submission: Submission) -> List[Signature]:
        """Non-superseded signatures of the submission's current signing round."""
        return (
            self.db.query(Signature)
            .filter(
                Signature.submission_id == submission.id,
                Signature.signing_round == submission.signing_round,
                Signature.is_superseded.is_(False),
            )
            .order_by(Signature.order, Signature.id)
            .all()
        )

    def all_signatures(self, submission_id: int) -> List[Signature]:
        return (
            self.db.query(Signature)
            .filter(Signature.submission_id == submission_id)
            .order_by(Signature.signing_round, Signature.order, Signature.id)
            .all()
        )

    def supersede_signatures(self, submission: Submission) -> int:
        """Mark every still-accepted signature of the submission superseded."""
        signatures = (
            self.db.query(Signature)
            .filter(Signature.submission_id == submission.id, Signature.is_superseded.is_(False))
            .all()
        )
        for signature in signatures:
            signature.is_superseded = True
        return len(signatures)

    # ------------------------------------------------------------------ amendments
    def amendments(self, submission_id: int) -> List[Amendment]:
        return (
            self.db.query(Amendment)
            .filter(Amendment.submission_id == submission_id)
            .order_by(Amendment.amendment_number)
            .all()
        )

    def next_amendment_number(self, submission_id: int) -> int:
        current = (
            self.db.query(func.max(Amendment.amendment_number))
            .filter(Amendment.submission_id == submission_id)
            .scalar()
        )
        return (current or 0) + 1

    # ------------------------------------------------------------------ transactions
    def commit(self) -> None:
        """Commit, mapping lost races to ConcurrencyConflict."""
        try:
            self.db.commit()
        except (StaleDataError, IntegrityError) as e:
            self.db.rollback()
            logger.warning(f"Concurrent modification detected: {e}")
            raise ConcurrencyConflict() from e

    def rollback(self) -> None:
        self.db.rollback()
