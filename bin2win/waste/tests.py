"""
Test suite for the waste module
Tests: submission workflow, operator collection, review permissions, QR scan, statistics
"""
from decimal import Decimal

from rest_framework import status

from bin2win.core.exceptions import BoothUnavailable, InvalidStatusTransition, InvalidWasteInput
from bin2win.core.models import AuditLog
from bin2win.core.test_utils import TestDataFactory, AuthenticatedAPIClient, CacheClearingTestCase
from bin2win.credits.models import CreditTransaction
from bin2win.waste.models import WasteSubmission, WasteType
from bin2win.waste.services import (
    approve_submission, collect_waste, mark_processing, quote_submission, reject_submission, submit_waste,
)


class WasteServiceTests(CacheClearingTestCase):
    """Test the submission workflow below the API"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.booth = TestDataFactory.create_booth()
        self.operator = TestDataFactory.create_operator(booth=self.booth)

    def test_quote_uses_configured_rates(self):
        self.assertEqual(quote_submission('metal', Decimal('3'))['points'], 50)
        plastic = WasteType.objects.get(code='plastic')
        plastic.points_per_kg = Decimal('20')
        plastic.save()
        self.assertEqual(quote_submission('plastic', Decimal('1'))['points'], 20)

    def test_quote_enforces_bounds(self):
        for quantity in ['0.05', '1000.01']:
            with self.assertRaises(InvalidWasteInput):
                quote_submission('plastic', quantity)

    def test_submit_waste_is_pending(self):
        submission = submit_waste(self.user, self.booth, 'Plastic', Decimal('2.5'))
        self.assertEqual(submission.status, 'pending')
        self.assertEqual(submission.points_earned, 28)
        self.assertTrue(submission.submission_number.startswith('WS-'))

        self.booth.refresh_from_db()
        self.assertEqual(self.booth.kg_today, Decimal('2.5'))
        self.assertEqual(self.booth.submissions_today, 1)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 0)
        self.assertFalse(CreditTransaction.objects.filter(user=self.user).exists())

    def test_submit_to_unavailable_booth(self):
        closed = TestDataFactory.create_booth(is_active=False)
        with self.assertRaises(BoothUnavailable):
            submit_waste(self.user, closed, 'plastic', Decimal('1'))

        paper_only = TestDataFactory.create_booth(accepted_waste_types=['paper'])
        with self.assertRaises(BoothUnavailable):
            submit_waste(self.user, paper_only, 'plastic', Decimal('1'))
        self.assertFalse(WasteSubmission.objects.exists())

    def test_submit_inactive_waste_type(self):
        WasteType.objects.filter(code='hazardous').update(is_active=False)
        with self.assertRaises(InvalidWasteInput):
            submit_waste(self.user, self.booth, 'hazardous', Decimal('1'))

    def test_approve_credits_user(self):
        submission = submit_waste(self.user, self.booth, 'metal', Decimal('3'))
        submission, credit_transaction = approve_submission(submission, self.operator, quality_score=4)

        self.assertEqual(submission.status, 'approved')
        self.assertEqual(submission.verified_by, self.operator)
        self.assertEqual(submission.quality_score, 4)
        self.assertEqual(credit_transaction.points, 50)
        self.assertEqual(credit_transaction.balance_before, 0)
        self.assertEqual(credit_transaction.balance_after, 50)
        self.assertEqual(credit_transaction.source, 'waste_submission')
        self.assertEqual(credit_transaction.submission, submission)

        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 50)
        self.assertEqual(self.user.total_points_earned, 50)
        self.assertEqual(self.user.total_waste_kg, Decimal('3'))
        self.assertEqual(self.user.total_submissions, 1)

    def test_approve_twice_is_refused(self):
        submission = submit_waste(self.user, self.booth, 'plastic', Decimal('1'))
        approve_submission(submission, self.operator)
        with self.assertRaises(InvalidStatusTransition):
            approve_submission(submission, self.operator)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 10)

    def test_reject(self):
        submission = submit_waste(self.user, self.booth, 'plastic', Decimal('1'))
        with self.assertRaises(InvalidWasteInput):
            reject_submission(submission, self.operator, '  ')

        submission = reject_submission(submission, self.operator, 'Mixed with organic waste')
        self.assertEqual(submission.status, 'rejected')
        self.assertEqual(submission.points_earned, 0)
        self.assertEqual(submission.rejection_reason, 'Mixed with organic waste')
        with self.assertRaises(InvalidStatusTransition):
            approve_submission(submission, self.operator)
        self.assertFalse(CreditTransaction.objects.filter(user=self.user).exists())

    def test_processing_then_approve(self):
        submission = submit_waste(self.user, self.booth, 'paper', Decimal('1'))
        submission = mark_processing(submission)
        self.assertEqual(submission.status, 'processing')
        with self.assertRaises(InvalidStatusTransition):
            mark_processing(submission)
        submission, _ = approve_submission(submission, self.operator)
        self.assertEqual(submission.status, 'approved')

    def test_collect_waste(self):
        submission, credit_transaction = collect_waste(self.operator, self.user, self.booth, 'plastic', Decimal('6'))
        self.assertEqual(submission.status, 'approved')
        self.assertEqual(submission.method, 'booth_operator')
        self.assertEqual(submission.collected_by, self.operator)
        self.assertEqual(credit_transaction.points, 72)
        self.assertEqual(credit_transaction.source, 'booth_collection')
        self.assertEqual(self.user.green_credits, 72)

        self.booth.refresh_from_db()
        self.assertEqual(self.booth.total_collected_kg, Decimal('6'))
        self.assertEqual(self.booth.total_submissions, 1)

    def test_collect_requires_assignment(self):
        other_booth = TestDataFactory.create_booth()
        with self.assertRaises(BoothUnavailable):
            collect_waste(self.operator, self.user, other_booth, 'plastic', Decimal('1'))

    def test_collect_for_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        with self.assertRaises(InvalidWasteInput):
            collect_waste(self.operator, self.user, self.booth, 'plastic', Decimal('1'))

    def test_capacity_is_enforced(self):
        booth = TestDataFactory.create_booth(max_kg_per_day=Decimal('50'))
        submit_waste(self.user, booth, 'organic', Decimal('45'))
        with self.assertRaises(BoothUnavailable):
            submit_waste(self.user, booth, 'organic', Decimal('10'))


class WasteTypeAPITests(CacheClearingTestCase):
    """Test waste type and calculator endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()

    def test_public_list(self):
        response = self.client.get('/api/v1/waste/types/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 8)
        codes = {row['code'] for row in response.data}
        self.assertIn('electronic', codes)

    def test_inactive_types_hidden_from_public(self):
        WasteType.objects.filter(code='textile').update(is_active=False)
        response = self.client.get('/api/v1/waste/types/')
        self.assertEqual(len(response.data), 7)

    def test_admin_updates_rate(self):
        admin = TestDataFactory.create_admin()
        self.client.authenticate_user(admin)
        glass = WasteType.objects.get(code='glass')
        response = self.client.patch(f'/api/v1/waste/types/{glass.id}/', {'points_per_kg': '14.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='WasteType', action='update')
        self.assertEqual(log.changes['points_per_kg'], {'old': '12.00', 'new': '14.00'})

        response = self.client.post('/api/v1/waste/calculate/', {'waste_type': 'glass', 'quantity': '1'},
                                    format='json')
        self.assertEqual(response.data['points'], 14)

    def test_participant_cannot_update_rate(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        glass = WasteType.objects.get(code='glass')
        response = self.client.patch(f'/api/v1/waste/types/{glass.id}/', {'points_per_kg': '99'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_calculate(self):
        response = self.client.post('/api/v1/waste/calculate/', {'waste_type': 'Plastic', 'quantity': '6'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['points'], 72)
        self.assertEqual(response.data['multiplier'], Decimal('1.2'))
        self.assertEqual(response.data['co2_saved'], Decimal('15.00'))

    def test_calculate_invalid(self):
        response = self.client.post('/api/v1/waste/calculate/', {'waste_type': 'styrofoam', 'quantity': '1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_waste_input')

        response = self.client.post('/api/v1/waste/calculate/', {'waste_type': 'plastic', 'quantity': '0'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)


class SubmissionAPITests(CacheClearingTestCase):
    """Test participant submissions and operator review"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.booth = TestDataFactory.create_booth(code='RAMGHAT01')
        self.operator = TestDataFactory.create_operator(booth=self.booth)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def _submit(self, waste_type='plastic', quantity='2.5', booth='RAMGHAT01'):
        return self.client.post('/api/v1/waste/submit/', {
            'waste_type': waste_type, 'quantity': quantity, 'booth': booth,
        }, format='json')

    def test_submit(self):
        response = self._submit()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['points_earned'], 28)
        self.assertEqual(response.data['booth_code'], 'RAMGHAT01')
        self.assertTrue(AuditLog.objects.filter(action='waste_submit').exists())

    def test_submit_by_booth_qr_and_id(self):
        self.assertEqual(self._submit(booth=self.booth.qr_code).status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._submit(booth=str(self.booth.id)).status_code, status.HTTP_201_CREATED)

    def test_submit_unknown_booth(self):
        response = self._submit(booth='NOWHERE')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_submit_booth_unavailable(self):
        TestDataFactory.create_booth(code='PAPERONLY', accepted_waste_types=['paper'])
        response = self._submit(booth='PAPERONLY')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'booth_unavailable')

    def test_submit_requires_authentication(self):
        self.client.logout()
        self.assertEqual(self._submit().status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_own_submissions(self):
        self._submit()
        other = TestDataFactory.create_user()
        TestDataFactory.create_submission(other, booth=self.booth)

        response = self.client.get('/api/v1/waste/submissions/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['username'], self.user.username)

    def test_list_filters(self):
        TestDataFactory.create_submission(self.user, booth=self.booth, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, waste_type='metal')
        response = self.client.get('/api/v1/waste/submissions/?status=approved')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/waste/submissions/?waste_type=metal')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/waste/submissions/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_operator_sees_booth_submissions(self):
        self._submit()
        TestDataFactory.create_submission(self.user, booth=TestDataFactory.create_booth())
        self.client.authenticate_user(self.operator)
        response = self.client.get('/api/v1/waste/submissions/')
        self.assertEqual(response.data['count'], 1)

    def test_detail_of_other_user_is_hidden(self):
        other_submission = TestDataFactory.create_submission(TestDataFactory.create_user(), booth=self.booth)
        response = self.client.get(f'/api/v1/waste/submissions/{other_submission.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_approve_flow(self):
        submission_id = self._submit(waste_type='metal', quantity='3').data['id']

        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.operator)
        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/approve/',
                                    {'quality_score': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['submission']['status'], 'approved')
        self.assertEqual(response.data['transaction']['points'], 50)

        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_status_transition')

        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/waste/submissions/{submission_id}/')
        self.assertEqual(len(response.data['credit_transactions']), 1)
        self.user.refresh_from_db()
        self.assertEqual(self.user.green_credits, 50)

    def test_unassigned_operator_cannot_review(self):
        submission_id = self._submit().data['id']
        self.client.authenticate_user(TestDataFactory.create_operator())
        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reject_flow(self):
        submission_id = self._submit().data['id']
        self.client.authenticate_user(self.operator)
        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/reject/',
                                    {'reason': 'Wet paper'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'rejected')
        self.assertEqual(response.data['points_earned'], 0)

    def test_process(self):
        submission_id = self._submit().data['id']
        self.client.authenticate_user(self.operator)
        response = self.client.post(f'/api/v1/waste/submissions/{submission_id}/process/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'processing')


class CollectionAPITests(CacheClearingTestCase):
    """Test QR scan and operator collection at the booth"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.booth = TestDataFactory.create_booth(code='RAMGHAT01')
        self.operator = TestDataFactory.create_operator(booth=self.booth)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.operator)

    def test_scan_user(self):
        response = self.client.post('/api/v1/waste/scan-user/', {'qr_code': self.user.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.id)
        self.assertEqual([booth['id'] for booth in response.data['booths']], [self.booth.id])

        response = self.client.post('/api/v1/waste/scan-user/', {'qr_code': self.user.backup_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_scan_unknown_user(self):
        response = self.client.post('/api/v1/waste/scan-user/',
                                    {'qr_code': 'SIMHASTHA_USER_0123456789ABCDEF'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_scan_without_assigned_booth(self):
        self.client.authenticate_user(TestDataFactory.create_operator())
        response = self.client.post('/api/v1/waste/scan-user/', {'qr_code': self.user.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_scan_requires_operator(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/waste/scan-user/', {'qr_code': self.user.qr_code}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_collect(self):
        response = self.client.post('/api/v1/waste/collect/', {
            'user': self.user.qr_code, 'booth': 'RAMGHAT01', 'waste_type': 'plastic', 'quantity': '6',
            'quality_score': 4,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['submission']['status'], 'approved')
        self.assertEqual(response.data['submission']['collected_by_username'], self.operator.username)
        self.assertEqual(response.data['transaction']['points'], 72)
        self.assertEqual(response.data['user']['green_credits'], 72)

    def test_collect_at_other_booth(self):
        TestDataFactory.create_booth(code='OTHER01')
        response = self.client.post('/api/v1/waste/collect/', {
            'user': self.user.qr_code, 'booth': 'OTHER01', 'waste_type': 'plastic', 'quantity': '1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_collect_unknown_user(self):
        response = self.client.post('/api/v1/waste/collect/', {
            'user': 'NOBODY00', 'booth': 'RAMGHAT01', 'waste_type': 'plastic', 'quantity': '1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_collection_list(self):
        collect_waste(self.operator, self.user, self.booth, 'plastic', Decimal('2'))
        collect_waste(self.operator, self.user, self.booth, 'metal', Decimal('3'))
        TestDataFactory.create_submission(self.user, booth=self.booth)

        response = self.client.get('/api/v1/waste/collections/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['summary']['total_collections'], 2)
        self.assertEqual(response.data['summary']['total_kg'], Decimal('5'))
        self.assertEqual(response.data['summary']['total_points'], 70)

    def test_collection_list_other_booth(self):
        other_booth = TestDataFactory.create_booth()
        response = self.client.get(f'/api/v1/waste/collections/?booth={other_booth.id}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class WasteStatsAPITests(CacheClearingTestCase):
    """Test grouped waste statistics"""

    def setUp(self):
        super().setUp()
        self.user = TestDataFactory.create_user()
        self.booth = TestDataFactory.create_booth()
        TestDataFactory.create_submission(self.user, booth=self.booth, quantity='2.00', points=20, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, quantity='4.00', points=44, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, waste_type='metal', quantity='1.00',
                                          points=15, status='approved')
        TestDataFactory.create_submission(self.user, booth=self.booth, quantity='9.00', status='pending')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_by_type(self):
        response = self.client.get('/api/v1/waste/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['group_by'], 'type')
        plastic = response.data['stats'][0]
        self.assertEqual(plastic['key'], 'plastic')
        self.assertEqual(plastic['submissions'], 2)
        self.assertEqual(plastic['total_kg'], Decimal('6'))
        self.assertEqual(plastic['total_points'], 64)
        self.assertEqual(plastic['average_kg'], Decimal('3'))
        self.assertEqual(response.data['totals']['submissions'], 3)
        self.assertEqual(response.data['totals']['total_points'], 79)

    def test_by_status_includes_pending(self):
        response = self.client.get('/api/v1/waste/stats/?group_by=status')
        keys = {row['key']: row['submissions'] for row in response.data['stats']}
        self.assertEqual(keys, {'approved': 3, 'pending': 1})

    def test_by_booth(self):
        response = self.client.get('/api/v1/waste/stats/?group_by=booth')
        self.assertEqual(response.data['stats'][0]['key'], self.booth.id)
        self.assertEqual(response.data['stats'][0]['name'], self.booth.name)

    def test_mine_only(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/waste/stats/?mine=true')
        self.assertEqual(response.data['stats'], [])
        self.assertEqual(response.data['totals']['total_kg'], Decimal('0'))

    def test_invalid_group(self):
        response = self.client.get('/api/v1/waste/stats/?group_by=colour')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
