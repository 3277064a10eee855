"""
supplies/workflow.py

Request lifecycle and approval chain.

States:
    PENDING -> APPROVED | REJECTED                (approval chain)
    APPROVED -> IN_PROGRESS -> COMPLETED          (fulfillment)
    APPROVED -> COMPLETED

Chain rules:
- Level 1 is created with the request and assigned to the first active
  manager (oldest account first). Further levels are appended one at a time.
- A level may be actioned only by its assigned approver, only while it is
  PENDING and no lower level is still PENDING.
- A rejection ends the chain immediately; the request is APPROVED once no
  level is left PENDING.

Every status transition runs in one transaction holding a row lock on the
request (SELECT ... FOR UPDATE) and bumps Request.version. Databases that
ignore row locks still detect a lost race through the version check, which
surfaces as ConcurrencyConflictError. Audit entries are written after commit.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, List, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from .audit import AuditRecorder, audit_recorder, serialize_model
from .errors import (
    CommentsRequiredError,
    ConcurrencyConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .extensions import db
from .models import (
    Approval,
    ApprovalStatus,
    AuditAction,
    Item,
    Request,
    RequestItem,
    RequestStatus,
    Role,
    User,
    UserStatus,
    money,
    to_decimal,
    utcnow,
)
from .schemas import CreateRequestInput, RequestItemInput, UpdateRequestInput
from .security import AccessDecision, AccessEvaluator, enforce_scope

logger = logging.getLogger(__name__)

EXTENSION_KEY = "supplies.workflow"

FULFILLMENT_TRANSITIONS = {
    RequestStatus.APPROVED: {RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED},
    RequestStatus.IN_PROGRESS: {RequestStatus.COMPLETED},
}

DELETABLE_STATUSES = {RequestStatus.PENDING, RequestStatus.REJECTED}


def current_workflow() -> "RequestWorkflow":
    return current_app.extensions[EXTENSION_KEY]


def _request_snapshot(req: Request) -> dict:
    data = serialize_model(req)
    data["items"] = [serialize_model(line) for line in req.items]
    return data


class RequestWorkflow:
    """Approval workflow engine. Stateless apart from its collaborators."""

    def __init__(self, evaluator: AccessEvaluator, recorder: Optional[AuditRecorder] = None) -> None:
        self.evaluator = evaluator
        self.recorder = recorder or audit_recorder

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------
    def _load(self, request_id: str, *, lock: bool = False) -> Request:
        stmt = select(Request).where(Request.id == request_id)
        if lock:
            stmt = stmt.with_for_update()
        req = db.session.execute(stmt).scalar_one_or_none()
        if req is None:
            raise NotFoundError("Request", request_id)
        return req

    def _authorize(self, user: Any, action: str, req: Request) -> AccessDecision:
        decision = self.evaluator.ensure(user, "requests", action, req.department)
        enforce_scope(decision, user, owner_id=req.requester_id, department=req.department)
        return decision

    @contextmanager
    def _version_guard(self, req: Request):
        try:
            yield
        except StaleDataError as exc:
            db.session.rollback()
            logger.warning("Concurrent modification of request %s", req.id)
            raise ConcurrencyConflictError() from exc

    def _flush(self, req: Request) -> None:
        with self._version_guard(req):
            db.session.flush()

    def _commit(self, req: Request) -> None:
        with self._version_guard(req):
            db.session.commit()

    def _add_lines(self, req: Request, lines: Iterable[RequestItemInput]) -> None:
        for line in lines:
            item = db.session.get(Item, line.item_id)
            if item is None:
                raise ValidationError("Invalid input", {"items": f"unknown item {line.item_id}"})
            unit_price = money(to_decimal(line.unit_price if line.unit_price is not None else item.unit_price))
            req.items.append(
                RequestItem(
                    item=item,
                    item_id=item.id,
                    line_no=req.next_line_no(),
                    quantity=line.quantity,
                    unit_price=unit_price,
                    notes=line.notes,
                )
            )

    def _first_manager(self) -> Optional[User]:
        stmt = (
            select(User)
            .where(User.role == Role.MANAGER, User.status == UserStatus.ACTIVE)
            .order_by(User.created_at.asc(), User.id.asc())
            .limit(1)
        )
        return db.session.execute(stmt).scalar_one_or_none()

    def _editable(self, request_id: str, user: Any) -> Request:
        """Load + lock a request the user may edit in its current state."""
        req = self._load(request_id, lock=True)
        self._authorize(user, "canEdit", req)
        if req.status != RequestStatus.PENDING:
            raise InvalidStateError(f"Only pending requests can be edited (status is {req.status.value})")
        return req

    def _run(self, func, *args, **kwargs):
        """Roll back the open transaction (and its row lock) on any failure."""
        try:
            return func(*args, **kwargs)
        except Exception:
            db.session.rollback()
            raise

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------
    def get_request(self, request_id: str, user: Any) -> Request:
        req = self._load(request_id)
        self._authorize(user, "canView", req)
        return req

    def pending_approvals_for(self, user: Any) -> List[Approval]:
        self.evaluator.ensure(user, "pendingApprovals", "canView")
        stmt = (
            select(Approval)
            .join(Request, Request.id == Approval.request_id)
            .where(
                Approval.approver_id == user.id,
                Approval.status == ApprovalStatus.PENDING,
                Request.status == RequestStatus.PENDING,
            )
            .order_by(Request.created_at.asc(), Approval.level.asc())
        )
        return list(db.session.execute(stmt).scalars())

    # -----------------------------------------------------------------
    # Creation
    # -----------------------------------------------------------------
    def create_request(self, user: Any, data: CreateRequestInput) -> Request:
        self.evaluator.ensure(user, "requests", "canCreate", data.department)
        return self._run(self._create_request, user, data)

    def _create_request(self, user: Any, data: CreateRequestInput) -> Request:
        req = Request(
            title=data.title,
            description=data.description,
            department=data.department,
            priority=data.priority,
            status=RequestStatus.PENDING,
            requester_id=user.id,
        )
        self._add_lines(req, data.items)
        req.recalc_total()
        db.session.add(req)

        manager = self._first_manager()
        if manager is not None:
            req.approvals.append(Approval(approver_id=manager.id, level=1, status=ApprovalStatus.PENDING))
        else:
            logger.warning("No active manager available; request '%s' has no approver", data.title)

        db.session.commit()
        logger.info("Request created: id=%s by=%s total=%s", req.id, user.id, req.total_amount)

        self.recorder.record(AuditAction.CREATE, "Request", req.id, user.id, f"Created request: {req.title}")
        return req

    # -----------------------------------------------------------------
    # Approval chain
    # -----------------------------------------------------------------
    def submit_approval(
        self,
        request_id: str,
        approver_id: str,
        decision: Any,
        comments: Optional[str] = None,
    ) -> Request:
        try:
            decision = ApprovalStatus(decision)
        except ValueError:
            raise ValidationError("Invalid input", {"decision": "must be APPROVED or REJECTED"}) from None
        if decision == ApprovalStatus.PENDING:
            raise ValidationError("Invalid input", {"decision": "must be APPROVED or REJECTED"})

        req = self._run(self._submit_approval, request_id, approver_id, decision, comments)

        verb = "Approved" if decision == ApprovalStatus.APPROVED else "Rejected"
        details = f"{verb} request: {req.title}"
        if comments and comments.strip():
            details += f" - Comments: {comments.strip()}"
        action = AuditAction.APPROVE if decision == ApprovalStatus.APPROVED else AuditAction.REJECT
        self.recorder.record(action, "Request", req.id, approver_id, details)
        return req

    def _submit_approval(
        self,
        request_id: str,
        approver_id: str,
        decision: ApprovalStatus,
        comments: Optional[str],
    ) -> Request:
        req = self._load(request_id, lock=True)

        if req.status != RequestStatus.PENDING:
            raise InvalidStateError(f"Request is already {req.status.value.lower()}")

        comments = (comments or "").strip() or None
        if decision == ApprovalStatus.REJECTED and not comments:
            raise CommentsRequiredError()

        current = next(
            (a for a in req.approvals if a.status == ApprovalStatus.PENDING and a.approver_id == approver_id),
            None,
        )
        if current is None:
            raise ForbiddenError("You are not assigned to approve this request")

        if any(a.level < current.level and a.status == ApprovalStatus.PENDING for a in req.approvals):
            raise ForbiddenError(f"Approval level {current.level} is waiting on an earlier level")

        now = utcnow()
        current.status = decision
        current.comments = comments
        current.updated_at = now

        if decision == ApprovalStatus.REJECTED:
            req.status = RequestStatus.REJECTED
        elif all(a.status != ApprovalStatus.PENDING for a in req.approvals):
            req.status = RequestStatus.APPROVED

        # Always touch the request so its version moves with every chain change.
        req.updated_at = now
        self._commit(req)

        logger.info(
            "Approval recorded: request=%s level=%s decision=%s status=%s",
            req.id, current.level, decision.value, req.status.value,
        )
        return req

    def assign_approver(self, request_id: str, user: Any, approver_id: str) -> Approval:
        approval = self._run(self._assign_approver, request_id, user, approver_id)
        self.recorder.record(
            AuditAction.ASSIGN,
            "Request",
            request_id,
            user.id,
            f"Assigned approval level {approval.level} to user {approver_id}",
        )
        return approval

    def _assign_approver(self, request_id: str, user: Any, approver_id: str) -> Approval:
        req = self._load(request_id, lock=True)
        self._authorize(user, "canApprove", req)
        if req.status != RequestStatus.PENDING:
            raise InvalidStateError(f"Request is already {req.status.value.lower()}")

        approver = db.session.get(User, approver_id)
        if approver is None:
            raise NotFoundError("User", approver_id)
        if not approver.is_active:
            raise ValidationError("Invalid input", {"approver_id": "approver is inactive"})
        if not self.evaluator.check_access(approver, "requests", "canApprove", req.department).allowed:
            raise ValidationError("Invalid input", {"approver_id": "user cannot approve requests of this department"})
        if any(a.approver_id == approver.id for a in req.approvals):
            raise ValidationError("Invalid input", {"approver_id": "already on this request's approval chain"})

        level = max((a.level for a in req.approvals), default=0) + 1
        approval = Approval(approver_id=approver.id, level=level, status=ApprovalStatus.PENDING)
        req.approvals.append(approval)
        req.updated_at = utcnow()
        self._commit(req)
        return approval

    # -----------------------------------------------------------------
    # Edits
    # -----------------------------------------------------------------
    def update_request(self, request_id: str, user: Any, patch: UpdateRequestInput) -> Request:
        if patch.is_empty():
            raise ValidationError("Nothing to update")
        req, before = self._run(self._update_request, request_id, user, patch)
        self.recorder.record(
            AuditAction.UPDATE,
            "Request",
            req.id,
            user.id,
            f"Updated request: {req.title}",
            before=before,
            after=_request_snapshot(req),
        )
        return req

    def _update_request(self, request_id: str, user: Any, patch: UpdateRequestInput):
        req = self._editable(request_id, user)
        if patch.department is not None and patch.department != req.department:
            # Moving a request requires edit rights in the target department too.
            self.evaluator.ensure(user, "requests", "canEdit", patch.department)

        before = _request_snapshot(req)

        if patch.title is not None:
            req.title = patch.title
        if patch.description is not None:
            req.description = patch.description
        if patch.department is not None:
            req.department = patch.department
        if patch.priority is not None:
            req.priority = patch.priority
        if patch.items is not None:
            req.items.clear()
            self._flush(req)
            self._add_lines(req, patch.items)

        req.recalc_total()
        req.updated_at = utcnow()
        self._commit(req)
        return req, before

    def add_item(self, request_id: str, user: Any, line: RequestItemInput) -> Request:
        req = self._run(self._add_item, request_id, user, line)
        self.recorder.record(
            AuditAction.UPDATE, "Request", req.id, user.id,
            f"Added item {line.item_id} x{line.quantity} to request: {req.title}",
        )
        return req

    def _add_item(self, request_id: str, user: Any, line: RequestItemInput) -> Request:
        req = self._editable(request_id, user)
        self._add_lines(req, [line])
        req.recalc_total()
        req.updated_at = utcnow()
        self._commit(req)
        return req

    def remove_item(self, request_id: str, user: Any, request_item_id: str) -> Request:
        req = self._run(self._remove_item, request_id, user, request_item_id)
        self.recorder.record(
            AuditAction.UPDATE, "Request", req.id, user.id,
            f"Removed line {request_item_id} from request: {req.title}",
        )
        return req

    def _remove_item(self, request_id: str, user: Any, request_item_id: str) -> Request:
        req = self._editable(request_id, user)
        line = next((li for li in req.items if li.id == request_item_id), None)
        if line is None:
            raise NotFoundError("RequestItem", request_item_id)
        if len(req.items) == 1:
            raise ValidationError("A request needs at least one item", {"items": "cannot remove the last item"})
        req.items.remove(line)
        req.recalc_total()
        req.updated_at = utcnow()
        self._commit(req)
        return req

    def delete_request(self, request_id: str, user: Any) -> None:
        title = self._run(self._delete_request, request_id, user)
        self.recorder.record(AuditAction.DELETE, "Request", request_id, user.id, f"Deleted request: {title}")

    def _delete_request(self, request_id: str, user: Any) -> str:
        req = self._load(request_id, lock=True)
        self._authorize(user, "canDelete", req)
        if req.status not in DELETABLE_STATUSES:
            raise InvalidStateError(f"Cannot delete a request with status {req.status.value}")
        title = req.title
        db.session.delete(req)
        self._commit(req)
        return title

    # -----------------------------------------------------------------
    # Fulfillment
    # -----------------------------------------------------------------
    def advance_fulfillment(self, request_id: str, user: Any, status: Any) -> Request:
        try:
            target = RequestStatus(status)
        except ValueError:
            raise ValidationError("Invalid input", {"status": "unknown status"}) from None

        req, previous = self._run(self._advance_fulfillment, request_id, user, target)
        self.recorder.record(
            AuditAction.STATUS_CHANGE, "Request", req.id, user.id,
            f"Status {previous.value} -> {target.value} for request: {req.title}",
        )
        return req

    def _advance_fulfillment(self, request_id: str, user: Any, target: RequestStatus):
        req = self._load(request_id, lock=True)
        self._authorize(user, "canApprove", req)
        previous = req.status
        if target not in FULFILLMENT_TRANSITIONS.get(previous, set()):
            raise InvalidStateError(f"Cannot move request from {previous.value} to {target.value}")
        req.status = target
        req.updated_at = utcnow()
        self._commit(req)
        return req, previous
