"""
ANWAR CRM - Demand generation and retailer point request flows
Tests: intake row, daily request ID, routing, one message per party, approval.
Run: pytest tests/test_demand_generation.py -v
"""

import re
import pytest

from anwar_crm.models import FormSubmission
from anwar_crm.schema import DEMAND_GENERATION_REQUESTS, RETAILER_POINT_REQUESTS
from anwar_crm.services import demand_generation, retailer_point, workbook
from anwar_crm.services.form_intake import FormPayloadError
from anwar_crm.services.approval_state_machine import InvalidTransitionError
from anwar_crm.services.notification_policy import FALLBACK_PREFIX
from tests.helpers import (
    _db_op, seed_employees, make_employee, phone, recipients, ASM, BD_INCHARGE, BDO, CRO,
)


def demand_form(email=ASM.email, territory="Kushtia-01", business_unit="ACL"):
    return FormSubmission(values=[
        "2025-01-15 10:00:00", email, territory, "Kushtia Bazaar", "Kushtia Sadar",
        "Low brand visibility", business_unit,
    ])


class TestDemandGenerationIntake:

    def test_submission_creates_pending_request(self, sent):
        async def run():
            await seed_employees(ASM, BD_INCHARGE)
            result = await demand_generation.handle_demand_generation_submission(demand_form())
            rows = await workbook.get_rows(DEMAND_GENERATION_REQUESTS)
            return result, rows

        result, rows = _db_op(run())
        assert re.fullmatch(r"DGR-\d{8}-\d{3}", result["request_id"])
        assert result["status"] == "Pending Review"
        assert result["routing"]["routing_mode"] == "exact"

        assert len(rows) == 1
        record = rows[0].record
        assert record["Request ID"] == result["request_id"]
        assert record["Territory"] == "Kushtia-01"
        assert record["Business Unit"] == "ACL"
        assert record["Status"] == "Pending Review"

        # one confirmation for the ASM, one action request for the BD Incharge
        assert sorted(recipients(sent)) == sorted([phone(ASM), phone(BD_INCHARGE)])
        for _, message in sent:
            assert result["request_id"] in message
        print(f"✅ {result['request_id']} routed to {result['routing']['recipients']}")

    def test_submitter_is_not_messaged_twice(self, sent):
        asm_incharge = make_employee("BDI009", "Rahim Uddin", "BD Incharge", ASM.whatsapp_number)

        async def run():
            await seed_employees(ASM, asm_incharge)
            return await demand_generation.handle_demand_generation_submission(demand_form())

        _db_op(run())
        assert recipients(sent) == [phone(ASM)]

    def test_fallback_when_no_incharge_in_territory(self, sent):
        far_incharge = make_employee("BDI002", "Faruk Mia", "BD Incharge", "01711000010", territory="Jessore-02")

        async def run():
            await seed_employees(ASM, far_incharge, BDO)
            return await demand_generation.handle_demand_generation_submission(demand_form())

        result = _db_op(run())
        assert result["routing"]["routing_mode"] == "fallback"
        broadcast = [m for number, m in sent if number != ASM.whatsapp_number]
        assert len(broadcast) == 2
        assert all(m.startswith(FALLBACK_PREFIX) for m in broadcast)

    def test_missing_business_unit(self, sent):
        with pytest.raises(FormPayloadError):
            _db_op(demand_generation.handle_demand_generation_submission(demand_form(business_unit="")))
        assert sent == []

    def test_submitter_email_from_named_values(self, sent):
        submission = FormSubmission(
            values=["2025-01-15 10:00:00", "", "Kushtia-01", "", "", "", "ACL"],
            named_values={"Email Address": [ASM.email]},
        )

        async def run():
            await seed_employees(ASM)
            return await demand_generation.handle_demand_generation_submission(submission)

        _db_op(run())
        assert phone(ASM) in recipients(sent)


class TestDemandGenerationDecision:

    def _submit_and(self, decide):
        async def run():
            await seed_employees(ASM, BD_INCHARGE)
            submitted = await demand_generation.handle_demand_generation_submission(demand_form())
            return submitted, await decide(submitted["request_id"])
        return _db_op(run())

    def test_approval_messages_submitter_once(self, sent):
        submitted, approved = self._submit_and(
            lambda rid: demand_generation.approve_demand_generation(rid, notes="Go ahead")
        )
        decision_messages = sent[2:]
        assert approved["record"]["Status"] == "Approved"
        assert len(decision_messages) == 1
        number, message = decision_messages[0]
        assert number == ASM.whatsapp_number
        assert submitted["request_id"] in message
        assert "Approved" in message
        assert "Go ahead" in message

    def test_rejection_carries_reason(self, sent):
        _, rejected = self._submit_and(
            lambda rid: demand_generation.reject_demand_generation(rid, reason="Budget exhausted")
        )
        assert rejected["record"]["Status"] == "Rejected"
        assert "Budget exhausted" in sent[-1][1]

    def test_second_decision_is_refused(self, sent):
        async def decide(rid):
            await demand_generation.approve_demand_generation(rid)
            await demand_generation.reject_demand_generation(rid, reason="Changed my mind")

        with pytest.raises(InvalidTransitionError):
            self._submit_and(decide)


class TestRetailerPoint:

    def test_request_routed_to_territory_asm(self, sent):
        async def run():
            await seed_employees(ASM, CRO)
            form = FormSubmission(values=["2025-01-15", CRO.email, "Kushtia-01", "Mirpur Bazaar", "ACL"])
            return await retailer_point.handle_retailer_point_submission(form)

        result = _db_op(run())
        assert re.fullmatch(r"RPR-\d{8}-001", result["request_id"])
        assert result["routing"]["routing_mode"] == "exact"
        assert sorted(recipients(sent)) == sorted([phone(CRO), phone(ASM)])

    def test_approval(self, sent):
        async def run():
            await seed_employees(ASM, CRO)
            form = FormSubmission(values=["2025-01-15", CRO.email, "Kushtia-01", "Mirpur Bazaar", "ACL"])
            submitted = await retailer_point.handle_retailer_point_submission(form)
            return await retailer_point.approve_retailer_point(submitted["request_id"], notes="Approved by ASM")

        result = _db_op(run())
        assert result["record"]["Status"] == "Approved"
        assert result["record"]["ASM Notes"] == "Approved by ASM"
