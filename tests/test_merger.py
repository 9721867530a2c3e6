from datetime import datetime, timedelta, timezone

from investor_sync.contacts.merger import ContactMerger, dedupe_contacts
from investor_sync.contacts.policy import ExclusionPolicy
from investor_sync.core.models import Contact, Insight

NOW = datetime(2025, 9, 30, 12, 0, tzinfo=timezone.utc)
T0 = datetime(2025, 9, 1, 15, 0, tzinfo=timezone.utc)
T1 = datetime(2025, 9, 10, 15, 0, tzinfo=timezone.utc)
CREATED = datetime(2025, 8, 1, tzinfo=timezone.utc)

POLICY = ExclusionPolicy(internal_domains=["viehq.com"])


def _insight(status, notes="n"):
    return Insight(status=status, next_step=f"next for {status}", notes=notes)


class TestContactMerger:
    """Test folding a run's observations into stored contacts."""

    def test_new_contact_defaults(self):
        merger = ContactMerger([], POLICY, now=NOW)

        merger.observe("Jane.Park@AcmeVentures.com", T0)

        [contact] = merger.merged()
        assert contact.email == "jane.park@acmeventures.com"
        assert contact.name == "Jane Park"
        assert contact.status == "New Contact"
        assert contact.next_step == "Initial outreach"
        assert contact.last_meeting == T0
        assert contact.created_at == NOW

    def test_last_meeting_advances(self):
        """A stored T0 contact seen at T1 ends with last_meeting T1."""
        stored = Contact(email="a@x.com", name="A", last_meeting=T0, created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        merger.observe("a@x.com", T1)

        [contact] = merger.merged()
        assert contact.last_meeting == T1
        assert contact.created_at == CREATED

    def test_last_meeting_never_moves_back(self):
        stored = Contact(email="a@x.com", last_meeting=T1, created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        merger.observe("a@x.com", T0)

        assert merger.merged()[0].last_meeting == T1

    def test_later_insight_wins_last_meeting_is_max(self):
        """Two sightings in one run: the second insight wins, last_meeting is the max."""
        merger = ContactMerger([], POLICY, now=NOW)

        merger.observe("a@x.com", T1, insight=_insight("Follow-up"))
        merger.observe("a@x.com", T0, insight=_insight("Interested"))

        [contact] = merger.merged()
        assert contact.status == "Interested"
        assert contact.next_step == "next for Interested"
        assert contact.last_meeting == T1

    def test_no_insight_keeps_stored_values(self):
        stored = Contact(email="a@x.com", status="Interested", next_step="Send deck", notes="old", created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        merger.observe("a@x.com", T1)

        [contact] = merger.merged()
        assert (contact.status, contact.next_step, contact.notes) == ("Interested", "Send deck", "old")

    def test_degraded_insight_overwrites(self):
        stored = Contact(email="a@x.com", status="Interested", created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        merger.observe("a@x.com", T1, insight=Insight(
            status="Manual Review Needed", next_step="Manual review required", notes="AI analysis failed: x", degraded=True,
        ))

        assert merger.merged()[0].status == "Manual Review Needed"

    def test_excluded_never_stored(self):
        stored = Contact(email="founder@viehq.com", created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        assert merger.observe("ops@viehq.com", T1) is False
        assert merger.merged() == []
        assert merger.touched_count == 0

    def test_dropped_rows_need_write(self):
        stored = [Contact(email="ops@viehq.com"), Contact(email="a@x.com"), Contact(email="a@x.com")]
        merger = ContactMerger(stored, POLICY, now=NOW)

        assert merger.touched_count == 0
        assert merger.dropped_count == 2
        assert merger.needs_write is True

    def test_clean_store_without_observations_needs_no_write(self):
        merger = ContactMerger([Contact(email="a@x.com")], POLICY, now=NOW)

        assert merger.needs_write is False

    def test_unseen_stored_contacts_retained_in_order(self):
        stored = [
            Contact(email="b@y.com", created_at=CREATED),
            Contact(email="a@x.com", created_at=CREATED),
        ]
        merger = ContactMerger(stored, POLICY, now=NOW)

        merger.observe("c@z.com", T0)
        merger.observe("a@x.com", T1)

        assert [c.email for c in merger.merged()] == ["b@y.com", "a@x.com", "c@z.com"]
        assert merger.touched_count == 2

    def test_stored_name_kept(self):
        stored = Contact(email="a@x.com", name="Alice Stored", created_at=CREATED)
        merger = ContactMerger([stored], POLICY, now=NOW)

        merger.observe("a@x.com", T1, name="Alice Calendar")

        assert merger.merged()[0].name == "Alice Stored"

    def test_lookup_reflects_observations(self):
        merger = ContactMerger([], POLICY, now=NOW)
        assert merger.lookup("a@x.com") is None

        merger.observe("a@x.com", T0, name="Alice")

        assert merger.lookup("A@X.com").name == "Alice"


class TestDedupeContacts:
    """Test collapsing duplicated store rows."""

    def test_latest_meeting_row_wins_earliest_created_kept(self):
        older = Contact(email="a@x.com", status="Rejected", last_meeting=T0, created_at=CREATED)
        newer = Contact(email="A@x.com", status="Interested", last_meeting=T1, created_at=CREATED + timedelta(days=5))

        unique = dedupe_contacts([older, newer], POLICY)

        assert list(unique) == ["a@x.com"]
        assert unique["a@x.com"].status == "Interested"
        assert unique["a@x.com"].created_at == CREATED
        assert unique["a@x.com"].last_meeting == T1

    def test_excluded_rows_dropped(self):
        unique = dedupe_contacts([Contact(email="ops@viehq.com")], POLICY)

        assert unique == {}
