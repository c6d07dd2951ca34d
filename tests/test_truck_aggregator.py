"""Unit tests for TruckAggregator."""
from processor.models import Event
from processor.truck_aggregator import TruckAggregator, slugify


def make_event(event_id, truck_name, start_ts):
    return Event(
        id=event_id,
        truck_name=truck_name,
        start_ts=start_ts,
        venue='Venue'
    )


class TestTruckAggregator:
    """Test cases for TruckAggregator class."""

    def test_groups_by_truck_name(self):
        """Test grouping, counts and last_seen."""
        events = [
            make_event('1', 'A', '2025-01-01T10:00Z'),
            make_event('2', 'A', '2025-01-05T10:00Z'),
            make_event('3', 'B', '2025-01-02T10:00Z')
        ]

        trucks = TruckAggregator().aggregate(events)

        assert len(trucks) == 2
        truck_a, truck_b = trucks
        assert truck_a.name == 'A'
        assert truck_a.total_events == 2
        assert truck_a.last_seen == '2025-01-05T10:00Z'
        assert [event.id for event in truck_a.events] == ['1', '2']
        assert truck_b.total_events == 1
        assert truck_b.last_seen == '2025-01-02T10:00Z'

    def test_last_seen_is_max_not_last(self):
        """Test that last_seen ignores source order."""
        events = [
            make_event('1', 'A', '2025-03-01T10:00Z'),
            make_event('2', 'A', '2025-01-01T10:00Z')
        ]

        trucks = TruckAggregator().aggregate(events)

        assert trucks[0].last_seen == '2025-03-01T10:00Z'

    def test_skips_events_without_truck_name(self):
        """Test that unnamed events are not aggregated."""
        events = [
            make_event('1', None, '2025-01-01T10:00Z'),
            make_event('2', '', '2025-01-01T10:00Z'),
            make_event('3', 'A', '2025-01-01T10:00Z')
        ]

        trucks = TruckAggregator().aggregate(events)

        assert [truck.name for truck in trucks] == ['A']

    def test_grouping_is_case_sensitive(self):
        """Test that different capitalizations stay separate trucks."""
        events = [
            make_event('1', 'Taco Truck', '2025-01-01T10:00Z'),
            make_event('2', 'taco truck', '2025-01-02T10:00Z')
        ]

        trucks = TruckAggregator().aggregate(events)

        assert len(trucks) == 2

    def test_to_dict(self):
        """Test the serialized truck summary."""
        trucks = TruckAggregator().aggregate(
            [make_event('1', "Mike's Tacos!", '2025-01-01T10:00Z')]
        )

        data = trucks[0].to_dict()

        assert data['name'] == "Mike's Tacos!"
        assert data['slug'] == 'mike-s-tacos'
        assert data['total_events'] == 1
        assert data['last_seen'] == '2025-01-01T10:00Z'
        assert data['events'][0]['id'] == '1'

    def test_empty_input(self):
        """Test aggregating no events."""
        assert TruckAggregator().aggregate([]) == []


class TestSlugify:
    """Test cases for slugify."""

    def test_basic(self):
        assert slugify('Blue Sparrow Food Truck') == 'blue-sparrow-food-truck'

    def test_trims_hyphens(self):
        assert slugify('  --Pierogi & Co.--  ') == 'pierogi-co'

    def test_stable(self):
        assert slugify('Burgh Bites') == slugify('Burgh Bites')

    def test_no_usable_characters(self):
        """Test that a symbol-only name still gets a non-empty slug."""
        slug = slugify('!!!')

        assert slug.startswith('truck-')
        assert not slug.endswith('-')
        assert slug == slugify('!!!')
