"""Card registry tests through the provisioning engine."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.tapcards.domain.actor import Actor
from src.tapcards.domain.errors import (
    CrossTenantAccess,
    GenerationExhausted,
    InvalidAssignment,
    InvalidRequest,
    InvalidTransition,
    PermissionDenied,
    QuotaExceeded,
    ResourceNotFound,
    TenantInactive,
)
from src.tapcards.domain.identifiers import CardIdGenerator
from src.tapcards.models import (
    AssignmentAction,
    CardStatus,
    ClaimTokenStatus,
    LifecycleStage,
    MembershipRole,
    QuotaResource,
    Tenant,
    TenantStatus,
    User,
)
from src.tapcards.repositories import (
    AuditFilters,
    CardFilters,
    ClaimTokenRepository,
    TenantQuotaRepository,
)
from src.tapcards.services import Assignee, CardTemplate, Invitation, ProvisioningEngine
from tests.helpers import (
    actor_for,
    create_profile,
    create_tenant,
    create_user_with_membership,
)

pytestmark = pytest.mark.integration


async def card_usage(session: AsyncSession, tenant: Tenant) -> int:
    row = await TenantQuotaRepository(session).get(tenant.id, QuotaResource.CARDS.value)
    assert row is not None
    return row.usage


class TestMinting:
    async def test_create_single_card(self, provisioning, admin_actor, db_session, tenant):
        card = await provisioning.create_card(
            admin_actor,
            CardTemplate(sku="PVC-BLACK", serial_number="SN-0001"),
        )

        assert len(card.card_uid) == 8
        assert card.status == CardStatus.INVENTORY.value
        assert card.lifecycle_stage == LifecycleStage.MANUFACTURED.value
        assert card.serial_number == "SN-0001"
        assert card.created_by_user_id == admin_actor.user_id
        assert await card_usage(db_session, tenant) == 1

    async def test_duplicate_serial_rejected_and_released(
        self, provisioning, admin_actor, db_session, tenant
    ):
        await provisioning.create_card(admin_actor, CardTemplate(serial_number="SN-1"))

        with pytest.raises(InvalidRequest):
            await provisioning.create_card(admin_actor, CardTemplate(serial_number="SN-1"))

        assert await card_usage(db_session, tenant) == 1

    async def test_serial_requires_single_card(self, provisioning, admin_actor, db_session, tenant):
        with pytest.raises(InvalidRequest):
            await provisioning.mint_cards(admin_actor, 2, CardTemplate(serial_number="SN-2"))

        assert await card_usage(db_session, tenant) == 0

    async def test_bulk_mint_thousand_cards(self, provisioning, db_session):
        tenant = await create_tenant(db_session, limits={QuotaResource.CARDS: -1})
        admin, _ = await create_user_with_membership(db_session, tenant)

        result = await provisioning.mint_cards(
            actor_for(admin, tenant),
            1000,
            CardTemplate(
                batch_number="B-2026-10",
                ndef_url_template="https://tap.example.com/c/{card_id}",
            ),
        )

        assert result.count == 1000
        assert len(set(result.card_uids)) == 1000
        assert len(result.preview(10)) == 10
        assert all(c.ndef_url == f"https://tap.example.com/c/{c.card_uid}" for c in result.cards)
        assert await card_usage(db_session, tenant) == 1000

    async def test_bulk_mint_over_limit_mints_nothing(
        self, provisioning, admin_actor, db_session, tenant
    ):
        with pytest.raises(QuotaExceeded) as exc_info:
            await provisioning.mint_cards(admin_actor, 11, CardTemplate())

        assert exc_info.value.limit == 10
        assert exc_info.value.requested == 11
        cards, _, _ = await provisioning.list_cards(admin_actor, CardFilters())
        assert cards == []
        assert await card_usage(db_session, tenant) == 0

    async def test_failed_mint_releases_reservation(
        self, provisioning, admin_actor, db_session, tenant
    ):
        existing = await provisioning.create_card(admin_actor, CardTemplate())
        existing_id, existing_uid = existing.id, existing.card_uid
        provisioning.registry.id_generator = CardIdGenerator(
            max_attempts=2, draw=lambda: existing_uid
        )

        with pytest.raises(GenerationExhausted):
            await provisioning.mint_cards(admin_actor, 5, CardTemplate())

        assert await card_usage(db_session, tenant) == 1
        cards, _, _ = await provisioning.list_cards(admin_actor, CardFilters())
        assert [c.id for c in cards] == [existing_id]

    @pytest.mark.parametrize("count", [0, 1001])
    async def test_count_bounds(self, provisioning, admin_actor, count):
        with pytest.raises(InvalidRequest):
            await provisioning.mint_cards(admin_actor, count, CardTemplate())


class TestAuthorization:
    async def test_member_cannot_mint(self, provisioning, db_session, tenant):
        member, _ = await create_user_with_membership(
            db_session, tenant, role=MembershipRole.MEMBER
        )
        with pytest.raises(PermissionDenied):
            await provisioning.create_card(actor_for(member, tenant), CardTemplate())

    async def test_member_can_list(self, provisioning, admin_actor, db_session, tenant):
        await provisioning.create_card(admin_actor, CardTemplate())
        member, _ = await create_user_with_membership(
            db_session, tenant, role=MembershipRole.MEMBER
        )

        cards, _, _ = await provisioning.list_cards(actor_for(member, tenant), CardFilters())
        assert len(cards) == 1

    async def test_non_member_is_denied(self, provisioning, db_session, tenant, admin):
        other_tenant = await create_tenant(db_session)
        outsider, _ = await create_user_with_membership(db_session, other_tenant)

        with pytest.raises(PermissionDenied):
            await provisioning.card_stats(actor_for(outsider, tenant))

    async def test_suspended_tenant_is_rejected(self, provisioning, db_session):
        tenant = await create_tenant(db_session, status=TenantStatus.SUSPENDED.value)
        admin, _ = await create_user_with_membership(db_session, tenant)

        with pytest.raises(TenantInactive):
            await provisioning.create_card(actor_for(admin, tenant), CardTemplate())

    async def test_cross_tenant_card_is_not_found(self, provisioning, admin_actor, db_session):
        other_tenant = await create_tenant(db_session)
        other_admin, _ = await create_user_with_membership(db_session, other_tenant)
        foreign = await provisioning.create_card(
            actor_for(other_admin, other_tenant), CardTemplate()
        )
        foreign_id = foreign.id

        with pytest.raises(CrossTenantAccess):
            await provisioning.get_card(admin_actor, foreign_id)
        with pytest.raises(ResourceNotFound):
            await provisioning.suspend_card(admin_actor, foreign_id)


class TestLifecycle:
    async def test_activate_suspend_unsuspend_deactivate(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())

        card = await provisioning.activate_card(admin_actor, card.id)
        assert card.status == CardStatus.ACTIVE.value
        assert card.activated_at is not None

        card = await provisioning.suspend_card(admin_actor, card.id, "lost")
        assert card.status == CardStatus.SUSPENDED.value
        assert card.suspended_at is not None

        card = await provisioning.unsuspend_card(admin_actor, card.id)
        assert card.status == CardStatus.ACTIVE.value
        assert card.suspended_at is None

        card = await provisioning.deactivate_card(admin_actor, card.id)
        assert card.status == CardStatus.DEACTIVATED.value
        assert card.lifecycle_stage == LifecycleStage.RETIRED.value
        assert card.deactivated_at is not None

    async def test_deactivated_card_cannot_be_revived(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, card.id)
        await provisioning.deactivate_card(admin_actor, card.id)

        with pytest.raises(InvalidTransition) as exc_info:
            await provisioning.activate_card(admin_actor, card.id)
        assert exc_info.value.current == CardStatus.DEACTIVATED.value

    async def test_inventory_card_cannot_be_suspended(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        card_id = card.id

        with pytest.raises(InvalidTransition):
            await provisioning.suspend_card(admin_actor, card_id)

        card = await provisioning.get_card(admin_actor, card_id)
        assert card.status == CardStatus.INVENTORY.value

    async def test_activating_provisioned_card_revokes_pending_token(
        self, provisioning, admin_actor, db_session
    ):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        issued = await provisioning.generate_claim(
            admin_actor,
            Invitation(card_id=card.id, assignee=Assignee(email="jane@example.com")),
        )

        card = await provisioning.activate_card(admin_actor, card.id)

        assert card.status == CardStatus.ACTIVE.value
        assert card.claim_token_id is None
        token = await ClaimTokenRepository(db_session).get_by_id(issued.token.id)
        await db_session.refresh(token)
        assert token.status == ClaimTokenStatus.REVOKED.value


class TestAssignment:
    async def _active_card(self, provisioning: ProvisioningEngine, actor: Actor):
        card = await provisioning.create_card(actor, CardTemplate())
        return await provisioning.activate_card(actor, card.id)

    async def test_assign_unassign_and_history(
        self, provisioning, admin_actor, db_session, tenant
    ):
        member, _ = await create_user_with_membership(
            db_session, tenant, role=MembershipRole.MEMBER
        )
        profile = await create_profile(db_session, tenant, member)
        card = await self._active_card(provisioning, admin_actor)

        card = await provisioning.assign_card(
            admin_actor, card.id, member.id, profile.id, reason="new hire"
        )
        assert card.assigned_to_user_id == member.id
        assert card.assigned_profile_id == profile.id

        card = await provisioning.unassign_card(admin_actor, card.id)
        assert card.assigned_to_user_id is None
        assert card.status == CardStatus.ACTIVE.value

        history, _, _ = await provisioning.card_history(admin_actor, card.id)
        actions = sorted(entry.action for entry in history)
        assert actions == [AssignmentAction.ASSIGNED.value, AssignmentAction.UNASSIGNED.value]
        assigned = next(e for e in history if e.action == AssignmentAction.ASSIGNED.value)
        assert assigned.reason == "new hire"
        assert assigned.actor_user_id == admin_actor.user_id

    async def test_assign_requires_active_card(self, provisioning, admin_actor, admin):
        card = await provisioning.create_card(admin_actor, CardTemplate())

        with pytest.raises(InvalidTransition):
            await provisioning.assign_card(admin_actor, card.id, admin.id)

    async def test_assignee_must_be_member(self, provisioning, admin_actor, db_session):
        other_tenant = await create_tenant(db_session)
        outsider, _ = await create_user_with_membership(db_session, other_tenant)
        card = await self._active_card(provisioning, admin_actor)

        with pytest.raises(InvalidAssignment):
            await provisioning.assign_card(admin_actor, card.id, outsider.id)

    async def test_profile_must_belong_to_assignee(
        self, provisioning, admin_actor, db_session, tenant, admin
    ):
        member, _ = await create_user_with_membership(
            db_session, tenant, role=MembershipRole.MEMBER
        )
        someone_elses = await create_profile(db_session, tenant, admin)
        card = await self._active_card(provisioning, admin_actor)

        with pytest.raises(InvalidAssignment):
            await provisioning.assign_card(admin_actor, card.id, member.id, someone_elses.id)

    async def test_unassign_unassigned_card(self, provisioning, admin_actor):
        card = await self._active_card(provisioning, admin_actor)

        with pytest.raises(InvalidAssignment):
            await provisioning.unassign_card(admin_actor, card.id)

    async def test_reassign_records_previous_user(
        self, provisioning, admin_actor, db_session, tenant, admin
    ):
        member, _ = await create_user_with_membership(
            db_session, tenant, role=MembershipRole.MEMBER
        )
        card = await self._active_card(provisioning, admin_actor)
        await provisioning.assign_card(admin_actor, card.id, admin.id)

        card = await provisioning.reassign_card(admin_actor, card.id, member.id)

        assert card.assigned_to_user_id == member.id
        history, _, _ = await provisioning.card_history(admin_actor, card.id)
        reassigned = next(e for e in history if e.action == AssignmentAction.REASSIGNED.value)
        assert reassigned.previous_user_id == admin.id

    async def test_reassigning_provisioned_card_revokes_invitation(
        self, provisioning, admin_actor, db_session, admin
    ):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        issued = await provisioning.generate_claim(
            admin_actor,
            Invitation(card_id=card.id, assignee=Assignee(email="jane@example.com")),
        )

        card = await provisioning.reassign_card(admin_actor, card.id, admin.id)

        assert card.status == CardStatus.ACTIVE.value
        assert card.assigned_to_user_id == admin.id
        assert card.claim_token_id is None
        token = await ClaimTokenRepository(db_session).get_by_id(issued.token.id)
        await db_session.refresh(token)
        assert token.status == ClaimTokenStatus.REVOKED.value

    async def test_suspended_card_cannot_be_reassigned(self, provisioning, admin_actor, admin):
        card = await self._active_card(provisioning, admin_actor)
        await provisioning.suspend_card(admin_actor, card.id)

        with pytest.raises(InvalidTransition):
            await provisioning.reassign_card(admin_actor, card.id, admin.id)


class TestTelemetry:
    async def test_taps_count_for_every_status(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())

        result = await provisioning.record_tap(card.card_uid)

        assert result.card.tap_count == 1
        assert result.card.last_tapped_at is not None
        assert result.redirect_url is None

    async def test_active_card_redirects(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, card.id)

        result = await provisioning.record_tap(card.card_uid)

        assert result.redirect_url == f"http://localhost:3000/c/{card.card_uid}"

    async def test_profile_redirect(
        self, provisioning, admin_actor, db_session, tenant, admin: User
    ):
        profile = await create_profile(db_session, tenant, admin, username="jane-doe")
        card = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, card.id)
        await provisioning.assign_card(admin_actor, card.id, admin.id, profile.id)

        result = await provisioning.public_card(card.card_uid)

        assert result.redirect_url == "http://localhost:3000/p/jane-doe"
        assert result.card.view_count == 1

    async def test_unknown_card(self, provisioning):
        with pytest.raises(ResourceNotFound):
            await provisioning.record_tap("ZZZZZZZZ")

    async def test_stats(self, provisioning, admin_actor):
        first = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, first.id)
        await provisioning.record_tap(first.card_uid)

        stats = await provisioning.card_stats(admin_actor)

        assert stats.total == 2
        assert stats.by_status == {"active": 1, "inventory": 1}
        assert stats.total_taps == 1


class TestMetadata:
    async def test_update_returns_changed_fields_only(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate(sku="A"))

        card = await provisioning.update_card(
            admin_actor, card.id, {"sku": "B", "batch_number": None}
        )

        assert card.sku == "B"
        logs, _, _ = await provisioning.list_audit_logs(
            admin_actor, filters=AuditFilters(action="card.update")
        )
        assert len(logs) == 1
        assert logs[0].changes == {"before": {"sku": "A"}, "after": {"sku": "B"}}

    async def test_status_is_not_editable(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())

        with pytest.raises(InvalidRequest):
            await provisioning.update_card(admin_actor, card.id, {"status": "active"})


class TestAudit:
    async def test_operations_are_audited(self, provisioning, admin_actor):
        card = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, card.id)
        await provisioning.suspend_card(admin_actor, card.id, "lost")

        logs, _, _ = await provisioning.list_audit_logs(admin_actor)

        actions = {log.action for log in logs}
        assert {"card.create", "card.activate", "card.suspend"} <= actions
        suspend = next(log for log in logs if log.action == "card.suspend")
        assert suspend.identifier == card.card_uid
        assert suspend.severity == "high"
        assert suspend.changes["status"] == {"from": "active", "to": "suspended"}
        assert suspend.changes["reason"] == "lost"

    async def test_filter_by_card_identifier(self, provisioning, admin_actor):
        first = await provisioning.create_card(admin_actor, CardTemplate())
        second = await provisioning.create_card(admin_actor, CardTemplate())
        await provisioning.activate_card(admin_actor, first.id)
        await provisioning.activate_card(admin_actor, second.id)

        logs, _, _ = await provisioning.list_audit_logs(
            admin_actor, filters=AuditFilters(entity_type="card", identifier=first.card_uid)
        )

        assert {log.action for log in logs} == {"card.create", "card.activate"}
        assert all(log.entity_id == first.id for log in logs)
