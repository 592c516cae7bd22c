"""Tests for exclusive browser session ownership."""

import threading

from bankfeed.browser.session import BrowserSession, SessionOwner


class TestBrowserSession:
    """Tests for BrowserSession."""

    def test_acquire_and_release(self, fake_automation):
        session = BrowserSession(fake_automation)

        assert session.acquire(SessionOwner.SCRAPER)
        assert session.owner == SessionOwner.SCRAPER
        session.release()
        assert not session.is_owned

    def test_second_owner_rejected(self, session):
        assert session.acquire(SessionOwner.RECORDER)
        assert not session.acquire(SessionOwner.PLAYER)
        assert not session.acquire(SessionOwner.RECORDER)
        assert session.owner == SessionOwner.RECORDER

    def test_release_by_other_owner_ignored(self, session):
        session.acquire(SessionOwner.PLAYER)
        session.release(SessionOwner.SCRAPER)
        assert session.owner == SessionOwner.PLAYER

        session.release(SessionOwner.PLAYER)
        assert session.owner is None

    def test_release_when_free_is_noop(self, session):
        session.release()
        assert not session.is_owned

    def test_busy_message_names_holder(self, session):
        session.acquire(SessionOwner.RECORDER)
        assert session.busy_message() == "Browser session 'test' is busy (recorder)"

    def test_concurrent_acquire_has_one_winner(self, fake_automation):
        session = BrowserSession(fake_automation)
        barrier = threading.Barrier(8)
        wins = []

        def contend():
            barrier.wait()
            wins.append(session.acquire(SessionOwner.SCRAPER))

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert wins.count(True) == 1
