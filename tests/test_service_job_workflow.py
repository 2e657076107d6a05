from datetime import timedelta

from printshop.models import (AuditLog, CustomerType, JobPriority, JobStatus,
                              OrderStatus, OrderStatusHistory, ServiceJob)
from printshop.services.errors import (InvalidTransition, InvariantViolation,
                                       ValidationError)
from printshop.services.order_workflow import OrderWorkflow
from printshop.services.service_job_workflow import ServiceJobWorkflow

from tests.base import NOW, WorkflowTestCase

J = JobStatus


class ServiceJobWorkflowTests(WorkflowTestCase):
    def setUp(self):
        super().setUp()
        product = self.make_product("Brochure", unit_cost=40)
        customer = self.make_customer("Beta Corp", CustomerType.credit,
                                      credit_limit=10000)
        self.orders = OrderWorkflow(self.db, self.env)
        self.jobs = ServiceJobWorkflow(self.db, self.env)

        order = self.orders.create_order(
            {
                "customer_id": customer.id,
                "order_type": "invoice",
                "payment_terms": "credit_30",
                "items": [
                    {"product_id": product.id, "quantity": 5},
                    {"product_id": product.id, "quantity": 2},
                ],
            },
            self.counter,
        )
        self.orders.update_status(order.id, OrderStatus.IN_PRODUCTION, self.counter)
        self.order_id = order.id
        self.job1, self.job2 = (self.db.query(ServiceJob).filter(
            ServiceJob.order_id == order.id).order_by(ServiceJob.id).all())

    def walk(self, job, *statuses, reason=None):
        for status in statuses:
            job = self.jobs.update_status(job.id, status, self.producer, reason)
        return job

    def finish(self, job):
        return self.walk(job, J.ACCEPTED, J.IN_PROGRESS, J.QA_REVIEW, J.COMPLETED)

    def ready_entries(self):
        return (self.db.query(OrderStatusHistory).filter(
            OrderStatusHistory.order_id == self.order_id,
            OrderStatusHistory.to_status == "READY").all())

    def test_one_job_per_item_on_production(self):
        self.assertEqual(self.job1.status, J.PENDING)
        self.assertEqual(self.job1.priority, JobPriority.normal)
        self.assertEqual(self.job1.job_number, "JOB-2026-0001")
        self.assertEqual(self.job1.due_date, NOW + timedelta(days=3))

        first = self.job1.history[0]
        self.assertIsNone(first.from_status)
        self.assertEqual(first.to_status, "PENDING")
        self.assertIsNone(first.changed_by)

        order = self.orders.get_order(self.order_id)
        self.assertEqual(self.jobs.create_from_order(order), [])

    def test_order_becomes_ready_once_all_jobs_done(self):
        self.finish(self.job1)
        self.assertEqual(self.orders.get_order(self.order_id).status,
                         OrderStatus.IN_PRODUCTION)

        self.finish(self.job2)
        self.db.expire_all()
        self.assertEqual(self.orders.get_order(self.order_id).status, OrderStatus.READY)
        entries = self.ready_entries()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].changed_by, self.admin.id)
        self.assertEqual(entries[0].notes, "All service jobs completed")

        self.walk(self.job1, J.DELIVERED)
        self.db.expire_all()
        self.assertEqual(len(self.ready_entries()), 1)
        self.assertIsNotNone(self.reload(self.job1).delivered_at)

    def test_cancelled_job_counts_as_done(self):
        self.finish(self.job1)
        self.walk(self.job2, J.CANCELLED)

        self.db.expire_all()
        self.assertEqual(self.orders.get_order(self.order_id).status, OrderStatus.READY)

    def test_creator_is_told_about_completion(self):
        self.finish(self.job1)
        self.assertEqual(len(self.notifications_for(self.counter, "Service Job Update")), 1)

    def test_qa_rejection_sends_job_back(self):
        job = self.walk(self.job1, J.ACCEPTED, J.IN_PROGRESS)
        started = job.started_at
        self.clock.advance(hours=2)

        job = self.walk(job, J.QA_REVIEW)
        job = self.walk(job, J.REJECTED, reason="Colour off")
        self.assertEqual(job.status, J.IN_PROGRESS)
        self.assertEqual(job.rework_count, 1)
        self.assertEqual(job.last_rejection_reason, "Colour off")
        self.assertEqual(job.notes, "QA Fail: Colour off")
        self.assertEqual(job.history[-1].to_status, "REJECTED")
        self.assertEqual(job.started_at, started)

    def test_repeated_rejection_alerts_managers(self):
        job = self.walk(self.job1, J.ACCEPTED, J.IN_PROGRESS)
        for _ in range(2):
            job = self.walk(job, J.QA_REVIEW, J.REJECTED)
        self.assertEqual(self.notifications_for(self.manager, "Service Job Alert"), [])

        job = self.walk(job, J.QA_REVIEW, J.REJECTED)
        self.assertEqual(job.rework_count, 3)
        self.assertEqual(job.notes, "QA Rejected - needs rework")
        self.assertEqual(len(self.notifications_for(self.manager, "Service Job Alert")), 1)

    def test_invalid_job_transitions(self):
        with self.assertRaises(InvalidTransition):
            self.walk(self.job1, J.COMPLETED)
        self.walk(self.job1, J.ACCEPTED)
        with self.assertRaises(InvalidTransition):
            self.walk(self.job1, J.PENDING)
        with self.assertRaises(ValidationError):
            self.walk(self.job1, "PRINTING")

    def test_unfinished_jobs_block_order_ready(self):
        self.finish(self.job1)
        with self.assertRaises(InvariantViolation):
            self.orders.update_status(self.order_id, OrderStatus.READY, self.manager)

    def test_assign(self):
        job = self.jobs.assign(self.job1.id, self.producer, self.manager)

        self.assertEqual(job.status, J.ACCEPTED)
        self.assertEqual(job.assigned_to, self.producer.id)
        self.assertEqual(job.history[-1].reason, "Assigned to Pat Press")
        self.assertEqual(job.history[-1].changed_by, self.manager.id)
        self.assertEqual(len(self.notifications_for(self.producer, "New Job Assigned")), 1)

        self.finish(self.job2)
        with self.assertRaises(InvalidTransition):
            self.jobs.assign(self.job2.id, self.producer, self.manager)

    def test_cancel_deletes_job(self):
        job_id = self.job1.id
        self.jobs.cancel(job_id, self.manager, "Duplicate")

        self.db.expire_all()
        self.assertIsNone(self.db.get(ServiceJob, job_id))
        audit = self.db.query(AuditLog).filter(AuditLog.table_name == "service_jobs").one()
        self.assertEqual(audit.action, "delete")
        self.assertEqual(audit.record_id, str(job_id))
        self.assertEqual(audit.new_values, {"reason": "Duplicate"})

    def test_queue_orders_by_priority(self):
        self.jobs.update_priority(self.job2.id, "urgent")

        queue = self.jobs.queue()
        self.assertEqual([j.id for j in queue], [self.job2.id, self.job1.id])
        self.assertEqual(self.jobs.queue(J.COMPLETED), [])
        with self.assertRaises(ValidationError):
            self.jobs.update_priority(self.job1.id, "whenever")

    def test_overdue_sweep(self):
        self.assertEqual(self.jobs.check_overdue_jobs(), 0)

        self.clock.advance(days=5)
        self.assertEqual(self.jobs.check_overdue_jobs(), 2)
        alerts = self.notifications_for(self.manager, "Service Job Alert")
        self.assertEqual(len(alerts), 2)
        self.assertIn("pending for more than 24 hours", alerts[0].message)

    def test_comments_newest_first(self):
        self.jobs.add_comment(self.job1.id, self.producer, "Paper loaded")
        self.clock.advance(minutes=5)
        self.jobs.add_comment(self.job1.id, self.manager, "  Check bleed  ")

        comments = self.jobs.list_comments(self.job1.id)
        self.assertEqual([c.comment for c in comments], ["Check bleed", "Paper loaded"])
        with self.assertRaises(ValidationError):
            self.jobs.add_comment(self.job1.id, self.producer, "   ")
