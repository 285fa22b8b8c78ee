from datetime import date, datetime

import pytest

from app.core.errors import NotFound, ValidationError
from app.models.room import RoomStatus, RoomType
from app.repositories.bookings import BookingRepository
from app.repositories.rooms import RoomRepository
from app.services.availability_service import available_rooms, is_available, nights_between, validate_range


@pytest.fixture
def repos(db_session):
    return RoomRepository(db_session), BookingRepository(db_session)


class TestDateRange:
    def test_nights(self):
        assert nights_between(date(2025, 6, 1), date(2025, 6, 3)) == 2

    def test_time_of_day_is_ignored(self):
        assert validate_range(datetime(2025, 6, 1, 23, 0), datetime(2025, 6, 2, 1, 0)) == (
            date(2025, 6, 1), date(2025, 6, 2))

    @pytest.mark.parametrize("check_in,check_out", [
        (date(2025, 6, 3), date(2025, 6, 1)),
        (date(2025, 6, 1), date(2025, 6, 1)),
    ])
    def test_empty_or_inverted_range_rejected(self, check_in, check_out):
        with pytest.raises(ValidationError):
            validate_range(check_in, check_out)


class TestIsAvailable:
    def test_free_room(self, repos, room_101):
        assert is_available(*repos, room_101.id, date(2025, 6, 1), date(2025, 6, 3))

    def test_overlap_blocks(self, repos, room_101, book):
        book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        assert not is_available(*repos, room_101.id, date(2025, 6, 2), date(2025, 6, 4))
        assert not is_available(*repos, room_101.id, date(2025, 5, 31), date(2025, 6, 2))
        assert not is_available(*repos, room_101.id, date(2025, 5, 31), date(2025, 6, 5))

    def test_back_to_back_is_allowed(self, repos, room_101, book):
        book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        assert is_available(*repos, room_101.id, date(2025, 6, 3), date(2025, 6, 5))
        assert is_available(*repos, room_101.id, date(2025, 5, 30), date(2025, 6, 1))

    def test_cancelled_booking_does_not_block(self, repos, room_101, book, service):
        b = book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        service.cancel(b.id, actor_id="test")
        assert is_available(*repos, room_101.id, date(2025, 6, 1), date(2025, 6, 3))

    def test_exclude_self(self, repos, room_101, book):
        b = book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        assert is_available(*repos, room_101.id, date(2025, 6, 2), date(2025, 6, 4), exclude_booking_id=b.id)

    def test_other_room_unaffected(self, repos, room_101, room_102, book):
        book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        assert is_available(*repos, room_102.id, date(2025, 6, 1), date(2025, 6, 3))

    def test_unknown_room(self, repos):
        with pytest.raises(NotFound):
            is_available(*repos, "missing", date(2025, 6, 1), date(2025, 6, 3))

    def test_invalid_range(self, repos, room_101):
        with pytest.raises(ValidationError):
            is_available(*repos, room_101.id, date(2025, 6, 3), date(2025, 6, 1))


class TestAvailableRooms:
    def test_lists_free_rooms(self, repos, room_101, room_102, book):
        book(room_101, date(2025, 6, 1), date(2025, 6, 3))
        rooms = available_rooms(*repos, date(2025, 6, 1), date(2025, 6, 3))
        assert [r.room_number for r in rooms] == ["102"]

    def test_maintenance_excluded(self, db_session, repos, room_101, room_102):
        room_102.status = RoomStatus.MAINTENANCE
        db_session.commit()
        rooms = available_rooms(*repos, date(2025, 6, 1), date(2025, 6, 3))
        assert [r.room_number for r in rooms] == ["101"]

    def test_capacity_and_type_filters(self, repos, room_101, room_102):
        assert [r.room_number for r in available_rooms(*repos, date(2025, 6, 1), date(2025, 6, 3), guests=3)] == ["102"]
        assert available_rooms(*repos, date(2025, 6, 1), date(2025, 6, 3), room_type=RoomType.SUITE) == []
