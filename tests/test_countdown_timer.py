import asyncio

from examroom.client.timer import CountdownTimer


def test_expires_once_at_zero():
    fired = []
    timer = CountdownTimer(lambda: fired.append(True))
    timer.start(2)
    timer.tick()
    assert fired == []
    assert timer.display == "00:01"
    timer.tick()
    timer.tick()
    assert fired == [True]
    assert timer.remaining == 0
    assert not timer.running


def test_zero_duration_expires_immediately():
    fired = []
    CountdownTimer(lambda: fired.append(True)).start(0)
    assert fired == [True]


def test_stopped_timer_does_not_tick():
    timer = CountdownTimer(lambda: None)
    timer.start(10)
    timer.stop()
    timer.tick()
    assert timer.remaining == 10


def test_display_format():
    timer = CountdownTimer(lambda: None)
    timer.start(61 * 60 + 5)
    assert timer.display == "61:05"


def test_run_ticks_once_per_second_until_expiry():
    fired = []
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    async def scenario():
        timer = CountdownTimer(lambda: fired.append(True), sleep=fake_sleep)
        timer.start(3)
        await timer.launch()

    asyncio.run(scenario())
    assert sleeps == [1, 1, 1]
    assert fired == [True]


def test_stop_from_expiry_callback_does_not_cancel_itself():
    async def scenario():
        timer = CountdownTimer(lambda: timer.stop(), sleep=lambda s: asyncio.sleep(0))
        timer.start(2)
        task = timer.launch()
        await task
        return task

    task = asyncio.run(scenario())
    assert not task.cancelled()
