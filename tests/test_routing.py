from datetime import datetime, timedelta

import pytest

from fixify.models.user import User, Student
from fixify.models.reference import Status, FacilityType
from fixify.models.complaint import Complaint
from fixify.services import lifecycle, routing

NOW = datetime(2026, 10, 19, 12, 0, 0)


def make(task_id, facility='Ceiling fan', category_id=1, status='In Progress', hours_ago=1,
         assigned_to=None, resolved_at=None, facility_id=None, submitter=None):
    return Complaint(
        task_id=task_id,
        description=f'{facility} issue {task_id}',
        facility_type=FacilityType(id=facility_id, name=facility, category_id=category_id),
        status=Status(status_name=status),
        created_at=NOW - timedelta(hours=hours_ago),
        assigned_to=assigned_to,
        resolved_at=resolved_at,
        submitter=submitter
    )


class TestGroupByCategory:
    def test_partitions_individual_and_shared(self):
        grouped = routing.group_by_category([
            make('TASK10003', 'Pantry', category_id=2),
            make('TASK10002', 'Ceiling fan', category_id=1),
            make('TASK10001', 'Ceiling fan', category_id=1),
        ])

        assert [parent['title'] for parent in grouped] == ['Individual', 'Shared']
        individual, shared = grouped
        assert individual['count'] == 2
        assert individual['children'][0]['title'] == 'Ceiling fan'
        assert [item['id'] for item in individual['children'][0]['items']] == ['TASK10002', 'TASK10001']
        assert shared['children'][0]['id'] == 'pantry'

    def test_facility_ids_are_url_safe(self):
        grouped = routing.group_by_category([
            make('TASK10001', 'Electrical socket / Power Connection'),
            make('TASK10002', 'Surau / Prayer Room', category_id=2),
        ])
        assert grouped[0]['children'][0]['id'] == 'electrical-socket-power-connection'
        assert grouped[1]['children'][0]['id'] == 'surau-prayer-room'

    def test_unknown_category_ids_count_as_individual(self):
        grouped = routing.group_by_category([make('TASK10001', 'Key', category_id=9)])
        assert grouped[0]['title'] == 'Individual'

    def test_children_keep_first_seen_order(self):
        grouped = routing.group_by_category([
            make('TASK10001', 'Table lamp'),
            make('TASK10002', 'Furniture'),
            make('TASK10003', 'Table lamp'),
        ])
        assert [child['title'] for child in grouped[0]['children']] == ['Table lamp', 'Furniture']
        assert grouped[0]['children'][0]['count'] == 2

    def test_same_display_name_merges_buckets(self):
        grouped = routing.group_by_category([
            make('TASK10001', 'Furniture', facility_id=5),
            make('TASK10002', 'Furniture', facility_id=42),
        ])
        children = grouped[0]['children']
        assert len(children) == 1
        assert children[0]['count'] == 2

    def test_grouping_key_is_case_sensitive(self):
        grouped = routing.group_by_category([
            make('TASK10001', 'Furniture'),
            make('TASK10002', 'furniture'),
        ])
        assert len(grouped[0]['children']) == 2

    def test_empty_input_gives_empty_result(self):
        assert routing.group_by_category([]) == []

    def test_items_carry_display_timestamp(self):
        item = routing.group_by_category([make('TASK10001', hours_ago=0)])[0]['children'][0]['items'][0]
        assert item == {'id': 'TASK10001', 'desc': 'Ceiling fan issue TASK10001', 'openedAt': '19/10/2026, 12:00:00'}


class TestAgingHistogram:
    def counts(self, complaints, viewer_id=7):
        return {row['bucket']: row['count'] for row in routing.aging_histogram(complaints, viewer_id, now=NOW)}

    def test_exactly_24_hours_is_one_to_two_days(self):
        counts = self.counts([make('TASK10001', hours_ago=24, assigned_to=7)])
        assert counts['<24h'] == 0
        assert counts['1-2 days'] == 1

    @pytest.mark.parametrize('hours, bucket', [
        (0, '<24h'),
        (23.9, '<24h'),
        (48, '1-2 days'),
        (48.5, '2-5 days'),
        (120, '2-5 days'),
        (121, '>5 days'),
    ])
    def test_bucket_boundaries(self, hours, bucket):
        counts = self.counts([make('TASK10001', hours_ago=hours, assigned_to=7)])
        assert counts[bucket] == 1
        assert sum(counts.values()) == 1

    def test_only_counts_open_complaints_of_the_viewer(self):
        counts = self.counts([
            make('TASK10001', hours_ago=2, assigned_to=7),
            make('TASK10002', hours_ago=2, assigned_to=8),
            make('TASK10003', hours_ago=2, assigned_to=None),
            make('TASK10004', hours_ago=2, assigned_to=7, resolved_at=NOW),
        ])
        assert counts == {'<24h': 1, '1-2 days': 0, '2-5 days': 0, '>5 days': 0}


class TestFacilityTasks:
    def test_matches_slug_case_insensitively(self):
        rows = routing.tasks_for_facility([
            make('TASK10001', 'Ceiling Fan'),
            make('TASK10002', 'Ceiling light'),
        ], 'ceiling-fan')

        assert [row['taskId'] for row in rows] == ['TASK10001']
        assert rows[0]['assignedTo'] == 'Unassigned'
        assert rows[0]['assignmentGroup'] == 'Unassigned'

    def test_matches_slug_of_names_with_punctuation(self):
        rows = routing.tasks_for_facility([
            make('TASK10001', 'Electrical socket / Power Connection'),
            make('TASK10002', 'Electrical socket'),
        ], 'electrical-socket-power-connection')

        assert [row['taskId'] for row in rows] == ['TASK10001']


class TestStudentViews:
    @pytest.fixture
    def history(self):
        student = User(full_name='Siti', student=Student(room_no='B-12', hostel_block='Block B'))
        return [
            make('TASK10001', 'Pantry', status='Submitted', hours_ago=30, submitter=student),
            make('TASK10002', 'Bathroom', status='Resolved', hours_ago=10, submitter=student),
            make('TASK10003', 'Ceiling fan', status='In Progress', hours_ago=20, submitter=student),
        ]

    def test_search_matches_status_facility_and_room(self, history):
        assert [c.task_id for c in routing.student_history(history, search='resolved')] == ['TASK10002']
        assert [c.task_id for c in routing.student_history(history, search='PANTRY')] == ['TASK10001']
        assert len(routing.student_history(history, search='b-12')) == 3

    @pytest.mark.parametrize('sort_by, expected', [
        ('date-asc', ['TASK10001', 'TASK10003', 'TASK10002']),
        ('date-desc', ['TASK10002', 'TASK10003', 'TASK10001']),
        ('category', ['TASK10002', 'TASK10003', 'TASK10001']),
        ('status', ['TASK10003', 'TASK10002', 'TASK10001']),
    ])
    def test_sorting(self, history, sort_by, expected):
        assert [c.task_id for c in routing.student_history(history, sort_by=sort_by)] == expected

    def test_summary_counts(self, history):
        summary = routing.student_summary(history)
        assert (summary['pending'], summary['in_progress'], summary['resolved']) == (1, 1, 1)
        assert summary['recent'][0]['task_id'] == 'TASK10002'


class TestOpenTasksForViewer:
    def test_staff_without_group_sees_nothing(self, users, viewer):
        lifecycle.create_complaint('Ceiling fan', 'Broken', users['student'])
        assert routing.resolve_group_id(viewer('no_group')) is None
        assert routing.open_tasks_for_viewer(viewer('no_group')) == []

    def test_unknown_group_name_sees_nothing(self, users, viewer):
        users['staff'].staff.assigned_group = 'Disbanded'
        lifecycle.create_complaint('Ceiling fan', 'Broken', users['student'])
        assert routing.open_tasks_for_viewer(viewer('staff')) == []

    def test_returns_open_group_complaints_newest_first(self, users, viewer, image):
        first = lifecycle.create_complaint('Ceiling fan', 'Fan broken', users['student'])
        second = lifecycle.create_complaint('Table lamp', 'Lamp flickers', users['student'])
        lifecycle.create_complaint('Bathroom', 'Leak', users['student'])
        closed = lifecycle.create_complaint('Ceiling light', 'Dead bulb', users['student'])
        for status in ('Pending', 'In Progress'):
            lifecycle.transition_status(closed, status, users['staff'])
        lifecycle.resolve(closed, users['staff'], [image()])

        tasks = routing.open_tasks_for_viewer(viewer('staff'))
        assert [c.task_id for c in tasks] == [second.task_id, first.task_id]

        grouped = routing.group_by_category(tasks)
        assert grouped[0]['count'] == 2

    def test_aging_uses_assignments(self, users, viewer):
        complaint = lifecycle.create_complaint('Ceiling fan', 'Fan broken', users['student'])
        lifecycle.assign(complaint, 'Electrical', users['staff'].id, users['staff'])

        assigned = routing.assigned_to_viewer(viewer('staff'))
        assert [c.task_id for c in assigned] == [complaint.task_id]
        assert routing.aging_histogram(assigned, users['staff'].id)[0] == {'bucket': '<24h', 'count': 1}

    def test_staff_in_group(self, users):
        names = [row['full_name'] for row in routing.staff_in_group('Electrical')]
        assert names == ['Ethan Electric', 'Eva Electric']
