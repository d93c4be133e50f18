"""Tests for the local channel pair."""
import threading
import time
import unittest

from plugin_bridge.channels import ChannelPair, Mailbox
from plugin_bridge.config import FullPolicy
from plugin_bridge.errors import MailboxClosed, MailboxFull


class TestMailbox(unittest.TestCase):
    """Test Mailbox send/receive semantics."""

    def setUp(self):
        self.mailbox = Mailbox("test", capacity=10)

    def test_try_recv_empty(self):
        """Non-blocking receive on an empty mailbox returns None."""
        self.assertIsNone(self.mailbox.try_recv())

    def test_fifo_order(self):
        for i in range(5):
            self.assertTrue(self.mailbox.send(i))
        self.assertEqual(len(self.mailbox), 5)
        self.assertEqual([self.mailbox.try_recv() for _ in range(5)], [0, 1, 2, 3, 4])
        self.assertIsNone(self.mailbox.try_recv())

    def test_recv_timeout(self):
        start = time.monotonic()
        self.assertIsNone(self.mailbox.recv(timeout=0.05))
        self.assertGreaterEqual(time.monotonic() - start, 0.04)

    def test_recv_wakes_on_send(self):
        def producer():
            time.sleep(0.05)
            self.mailbox.send("hello")

        threading.Thread(target=producer).start()
        self.assertEqual(self.mailbox.recv(timeout=2.0), "hello")

    def test_send_none_rejected(self):
        with self.assertRaises(ValueError):
            self.mailbox.send(None)

    def test_send_after_close(self):
        """Sends on a closed mailbox are discarded."""
        self.mailbox.close()
        self.assertTrue(self.mailbox.closed)
        self.assertFalse(self.mailbox.send("late"))

    def test_close_drains_then_raises(self):
        """Messages queued before close are still delivered."""
        self.mailbox.send("a")
        self.mailbox.send("b")
        self.mailbox.close()

        self.assertEqual(self.mailbox.try_recv(), "a")
        self.assertEqual(self.mailbox.recv(timeout=0.1), "b")
        with self.assertRaises(MailboxClosed):
            self.mailbox.try_recv()
        with self.assertRaises(MailboxClosed):
            self.mailbox.recv()

    def test_close_idempotent(self):
        self.mailbox.close()
        self.mailbox.close()
        with self.assertRaises(MailboxClosed):
            self.mailbox.try_recv()

    def test_close_wakes_blocked_receiver(self):
        errors = []

        def consumer():
            try:
                self.mailbox.recv()
            except MailboxClosed as e:
                errors.append(e)

        thread = threading.Thread(target=consumer)
        thread.start()
        time.sleep(0.05)
        self.mailbox.close()
        thread.join(timeout=2.0)

        self.assertFalse(thread.is_alive())
        self.assertEqual(len(errors), 1)


class TestFullPolicy(unittest.TestCase):
    """Test behavior at capacity."""

    def test_drop_oldest(self):
        mailbox = Mailbox("test", capacity=3, full_policy=FullPolicy.DROP_OLDEST)
        for i in range(5):
            self.assertTrue(mailbox.send(i))

        self.assertEqual(mailbox.dropped_count, 2)
        self.assertEqual([mailbox.try_recv() for _ in range(3)], [2, 3, 4])

    def test_error(self):
        mailbox = Mailbox("test", capacity=2, full_policy=FullPolicy.ERROR)
        mailbox.send(1)
        mailbox.send(2)
        with self.assertRaises(MailboxFull):
            mailbox.send(3)
        self.assertEqual(mailbox.try_recv(), 1)

    def test_block_times_out(self):
        mailbox = Mailbox("test", capacity=1)
        mailbox.send(1)
        self.assertFalse(mailbox.send(2, timeout=0.05))

    def test_block_waits_for_room(self):
        mailbox = Mailbox("test", capacity=1)
        mailbox.send(1)

        def consumer():
            time.sleep(0.05)
            mailbox.try_recv()

        threading.Thread(target=consumer).start()
        self.assertTrue(mailbox.send(2, timeout=2.0))
        self.assertEqual(mailbox.try_recv(), 2)

    def test_blocked_sender_released_by_close(self):
        mailbox = Mailbox("test", capacity=1)
        mailbox.send(1)
        results = []

        thread = threading.Thread(target=lambda: results.append(mailbox.send(2)))
        thread.start()
        time.sleep(0.05)
        mailbox.close()
        thread.join(timeout=2.0)

        self.assertFalse(thread.is_alive())
        self.assertEqual(results, [False])

    def test_unbounded(self):
        mailbox = Mailbox("test", capacity=0, full_policy=FullPolicy.ERROR)
        for i in range(5000):
            mailbox.send(i)
        self.assertEqual(len(mailbox), 5000)


class TestConcurrentDelivery(unittest.TestCase):
    """Order is kept across threads."""

    def test_producer_consumer_order(self):
        mailbox = Mailbox("test", capacity=16)
        received = []

        def consumer():
            while True:
                try:
                    item = mailbox.recv(timeout=1.0)
                except MailboxClosed:
                    return
                if item is not None:
                    received.append(item)

        thread = threading.Thread(target=consumer)
        thread.start()
        for i in range(500):
            mailbox.send(i)
        mailbox.close()
        thread.join(timeout=5.0)

        self.assertFalse(thread.is_alive())
        self.assertEqual(received, list(range(500)))


class TestChannelPair(unittest.TestCase):

    def test_directions_are_independent(self):
        pair = ChannelPair.create(capacity=4)
        pair.inbound.send("command")
        self.assertIsNone(pair.outbound.try_recv())
        self.assertEqual(pair.inbound.try_recv(), "command")

    def test_close_both(self):
        pair = ChannelPair.create()
        pair.close()
        self.assertTrue(pair.inbound.closed)
        self.assertTrue(pair.outbound.closed)

    def test_create_applies_policy(self):
        pair = ChannelPair.create(capacity=1, full_policy=FullPolicy.ERROR)
        pair.outbound.send("x")
        with self.assertRaises(MailboxFull):
            pair.outbound.send("y")


if __name__ == '__main__':
    unittest.main()
