import unittest
from actions import icons
from actions.command import ScriptExecutionFailed
from actions.settings import ButtonSettings
from controllers.run_script_controller import RunScriptController
from tests.fakes import FakeButton, FakeRunner, ManualDefer


class ControllerTestCase(unittest.TestCase):
    def setUp(self):
        self.runner = FakeRunner()
        self.defer = ManualDefer()
        # ticks are driven by hand through Schedule.tick()
        self.controller = RunScriptController(runner=self.runner, defer=self.defer, tick_seconds=3600)
        self.button = FakeButton(3)

    def tearDown(self):
        self.controller.shutdown()

    def state(self, settings):
        return self.controller.registry.get(settings.action_id)


class TestScheduling(ControllerTestCase):
    def test_start_then_stop_leaves_no_timer(self):
        settings = ButtonSettings(file="job.py", schedule="5", action_id="a")
        self.controller.will_appear(self.button, settings)
        schedule = self.controller.start_schedule(self.button, settings, 5)
        self.assertTrue(schedule.active)

        self.assertTrue(self.controller.stop_schedule(self.button, settings))
        self.assertFalse(schedule.active)
        self.assertFalse(self.controller.is_scheduled("a"))
        self.assertEqual(self.button.title, "")
        self.assertEqual(self.button.image, "imgs/plugin/python-schedule.png")

    def test_stop_without_schedule_is_a_noop(self):
        settings = ButtonSettings(file="job.py", action_id="a")
        self.controller.will_appear(self.button, settings)
        images, titles = list(self.button.images), list(self.button.titles)

        self.assertFalse(self.controller.stop_schedule(self.button, settings))
        self.assertFalse(self.controller.stop_schedule(self.button, settings, forced=True))
        self.assertEqual(self.button.images, images)
        self.assertEqual(self.button.titles, titles)

    def test_countdown_scenario(self):
        settings = ButtonSettings(file="script.py", schedule="5", countdown=True, action_id="a")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)

        self.assertEqual(self.runner.commands, ['python "script.py"'])
        self.assertEqual(self.button.title, "5")
        self.assertEqual(self.button.image, "imgs/plugin/run-python-schedule.png")

        schedule = self.state(settings).schedule
        for _ in range(4):
            schedule.tick()
        self.assertEqual(self.button.titles[-4:], ["4", "3", "2", "1"])
        self.assertEqual(len(self.runner.commands), 1)

        schedule.tick()
        self.assertEqual(len(self.runner.commands), 2)
        self.assertEqual(self.button.title, "5")

    def test_short_press_stops_running_schedule(self):
        settings = ButtonSettings(file="script.py", schedule="5", action_id="a")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertTrue(self.controller.is_scheduled("a"))

        self.controller.short_press(self.button, settings)
        self.assertFalse(self.controller.is_scheduled("a"))
        self.assertEqual(len(self.runner.commands), 1)

    def test_starting_again_replaces_the_schedule(self):
        settings = ButtonSettings(file="script.py", schedule="5", action_id="a")
        self.controller.will_appear(self.button, settings)
        first = self.controller.start_schedule(self.button, settings, 5)
        second = self.controller.start_schedule(self.button, settings, 5)
        self.assertFalse(first.active)
        self.assertTrue(second.active)
        self.assertIs(self.state(settings).schedule, second)

    def test_cancelled_schedule_tick_does_nothing(self):
        settings = ButtonSettings(file="script.py", schedule="1", action_id="a")
        self.controller.will_appear(self.button, settings)
        schedule = self.controller.start_schedule(self.button, settings, 1)
        self.controller.stop_schedule(self.button, settings)
        schedule.tick()
        self.assertEqual(len(self.runner.commands), 1)


class TestAutostart(ControllerTestCase):
    def test_autostart_fires_once_per_identity(self):
        settings = ButtonSettings(file="job.py", schedule="10", autostart=True, action_id="auto")
        self.controller.will_appear(self.button, settings)
        self.assertEqual(self.button.image, icons.AUTOSTART)
        self.assertEqual(self.runner.commands, [])

        self.defer.run_all()
        self.assertTrue(self.controller.is_scheduled("auto"))
        self.assertEqual(len(self.runner.commands), 1)
        self.assertEqual(self.button.image, "imgs/plugin/run-python-schedule.png")

        for _ in range(5):
            self.controller.did_receive_settings(self.button, settings)
        self.assertFalse(self.controller.is_scheduled("auto"))

        self.controller.will_disappear(self.button, settings)
        self.controller.will_appear(self.button, settings)
        self.defer.run_all()
        self.assertFalse(self.controller.is_scheduled("auto"))
        self.assertEqual(len(self.runner.commands), 1)

    def test_settings_before_appear_suppress_autostart(self):
        settings = ButtonSettings(file="job.py", schedule="10", autostart=True, action_id="auto")
        self.controller.did_receive_settings(self.button, settings)
        self.controller.will_appear(self.button, settings)
        self.defer.run_all()
        self.assertFalse(self.controller.is_scheduled("auto"))

    def test_separate_schedule_autostart(self):
        settings = ButtonSettings(
            file="toggle.ps1", true_image="on.png", separate_script=True,
            separate_file="status.ps1", separate_schedule="30",
            separate_schedule_checkbox=True, action_id="vpn",
        )
        self.controller.will_appear(self.button, settings)
        self.assertEqual(self.button.image, icons.SEPARATE_AUTOSTART)
        self.defer.run_all()
        self.assertTrue(self.controller.is_scheduled("vpn"))
        self.assertIn('"status.ps1"', self.runner.commands[0])

    def test_settings_change_cancels_pending_autostart(self):
        settings = ButtonSettings(file="job.py", schedule="10", autostart=True, action_id="auto")
        self.controller.will_appear(self.button, settings)
        self.controller.did_receive_settings(self.button, settings)
        self.defer.run_all()
        self.assertFalse(self.controller.is_scheduled("auto"))
        self.assertEqual(self.runner.commands, [])


class TestScriptOutput(ControllerTestCase):
    def test_true_output_pins_icon_until_file_changes(self):
        self.runner.outputs = {"toggle.ps1": "done", "status.ps1": "True"}
        settings = ButtonSettings(
            file="toggle.ps1", true_image="on.png", false_image="off.png",
            separate_script=True, separate_file="status.ps1", action_id="vpn",
        )
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.defer.run_all()
        self.assertEqual(len(self.runner.commands), 2)
        self.assertEqual(self.button.image, "on.png")
        self.assertTrue(self.state(settings).image_pinned)

        self.controller.did_receive_settings(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.button.image, "on.png")

        changed = ButtonSettings(file="other.ps1", action_id="vpn")
        self.controller.did_receive_settings(self.button, changed)
        self.assertFalse(self.state(changed).image_pinned)
        self.assertEqual(self.button.image, "imgs/plugin/powershell-script.png")

    def test_false_output_pins_false_image(self):
        self.runner.outputs = {"check.py": "0"}
        settings = ButtonSettings(file="check.py", false_image="off.png", action_id="c")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.defer.run_all()
        self.assertEqual(self.button.image, "off.png")

    def test_primary_output_does_not_pin_when_separate_script_exists(self):
        self.runner.outputs = {"toggle.py": "True", "status.py": "maybe"}
        settings = ButtonSettings(
            file="toggle.py", true_image="on.png", separate_script=True,
            separate_file="status.py", action_id="t",
        )
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertNotIn("on.png", self.button.images)
        self.defer.run_all()
        self.assertFalse(self.state(settings).image_pinned)
        self.assertEqual(self.button.image, "imgs/plugin/python-script.png")

    def test_other_output_clears_pin(self):
        settings = ButtonSettings(file="check.py", true_image="on.png", action_id="c")
        self.controller.will_appear(self.button, settings)
        self.runner.outputs = {"check.py": "true"}
        self.controller.short_press(self.button, settings)
        self.assertTrue(self.state(settings).image_pinned)

        self.runner.outputs = {"check.py": "unknown"}
        self.controller.short_press(self.button, settings)
        self.assertFalse(self.state(settings).image_pinned)

    def test_failed_script_shows_exit_code(self):
        self.runner.errors = {"broken.py": ScriptExecutionFailed(2, "boom")}
        settings = ButtonSettings(file="broken.py", action_id="b")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.button.title, "Exit 2")

    def test_successful_rerun_clears_error_title(self):
        self.runner.errors = {"job.py": ScriptExecutionFailed(1, "boom")}
        settings = ButtonSettings(file="job.py", action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.button.title, "Exit 1")

        self.runner.errors = {}
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.button.title, "")

    def test_countdown_title_survives_successful_run(self):
        settings = ButtonSettings(file="job.py", schedule="3", countdown=True, action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.button.title, "3")

    def test_unsupported_separate_file_shows_invalid_icon(self):
        settings = ButtonSettings(file="job.py", separate_schedule_checkbox=True,
                                  separate_file="status.sh", separate_schedule="5", action_id="x")
        self.controller.will_appear(self.button, settings)
        self.controller.start_schedule(self.button, settings, 5)
        self.assertEqual(self.button.image, icons.INVALID)
        self.assertEqual(self.runner.commands, [])

    def test_result_after_disappear_is_ignored(self):
        settings = ButtonSettings(file="check.py", true_image="on.png", action_id="c")
        self.controller.will_appear(self.button, settings)
        self.controller.will_disappear(self.button, settings)
        self.runner.outputs = {"check.py": "True"}
        self.controller.execute(self.button, settings, "check.py", pin_allowed=True)
        self.assertNotIn("on.png", self.button.images)


class TestKeyPresses(ControllerTestCase):
    def test_unsupported_file_ignores_press(self):
        settings = ButtonSettings(file="notes.txt", action_id="n")
        self.controller.will_appear(self.button, settings)
        self.assertEqual(self.button.image, icons.INVALID)
        self.controller.short_press(self.button, settings)
        self.assertEqual(self.runner.commands, [])

    def test_quick_press_runs_script_once(self):
        settings = ButtonSettings(file="job.py", parameters="--now", action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.key_down(self.button, settings)
        self.controller.key_up(self.button, settings)
        self.assertEqual(self.runner.commands, ['python "job.py" --now'])
        self.assertEqual(self.button.image, "imgs/plugin/run-python-script.png")
        self.defer.run_all()
        self.assertEqual(self.button.image, "imgs/plugin/python-script.png")

    def test_long_press_toggles_separate_schedule(self):
        settings = ButtonSettings(
            file="toggle.ps1", true_image="on.png", separate_script=True,
            separate_file="status.ps1", separate_schedule="30",
            separate_schedule_checkbox=True, action_id="vpn",
        )
        self.controller.did_receive_settings(self.button, settings)

        self.controller.long_press(self.button, settings)
        self.assertEqual(self.button.image, icons.SCHEDULE_STARTED)
        self.defer.run_all()
        self.assertTrue(self.controller.is_scheduled("vpn"))
        self.assertEqual(self.button.image, "imgs/plugin/powershell-script.png")

        self.controller.long_press(self.button, settings)
        self.assertEqual(self.button.image, icons.SCHEDULE_ENDED)
        self.assertFalse(self.controller.is_scheduled("vpn"))
        self.defer.run_all()
        self.assertEqual(len(self.runner.commands), 1)

    def test_short_press_leaves_separate_schedule_running(self):
        settings = ButtonSettings(
            file="toggle.ps1", true_image="on.png", separate_script=True,
            separate_file="status.ps1", separate_schedule="30",
            separate_schedule_checkbox=True, action_id="vpn",
        )
        self.controller.did_receive_settings(self.button, settings)
        self.controller.start_schedule(self.button, settings, 30)
        self.controller.short_press(self.button, settings)
        self.assertTrue(self.controller.is_scheduled("vpn"))
        self.assertIn('"toggle.ps1"', self.runner.commands[-1])

    def test_long_press_without_separate_schedule_does_nothing(self):
        settings = ButtonSettings(file="job.py", action_id="j")
        self.controller.will_appear(self.button, settings)
        images = list(self.button.images)
        self.controller.long_press(self.button, settings)
        self.assertEqual(self.button.images, images)

    def test_new_long_press_delay_reaches_existing_keys(self):
        settings = ButtonSettings(file="job.py", action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.key_down(self.button, settings)
        self.controller.key_up(self.button, settings)

        self.controller.set_long_press_delay(0.25)
        self.assertEqual(self.controller.long_press_delay, 0.25)
        self.assertEqual(self.controller._press_handlers[self.button.key].long_press_delay, 0.25)


class TestLifecycle(ControllerTestCase):
    def test_cleared_file_shows_idle_icon(self):
        settings = ButtonSettings(file="job.py", schedule="5", countdown=True, action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, settings)

        cleared = ButtonSettings.from_dict({"file": "", "schedule": "5", "countdown": True,
                                            "actionId": "j"}).normalized()
        self.assertEqual(cleared.schedule, "")
        self.assertFalse(cleared.countdown)
        self.controller.did_receive_settings(self.button, cleared)
        self.assertFalse(self.controller.is_scheduled("j"))
        self.assertEqual(self.button.image, icons.LOGO)
        self.assertEqual(self.button.title, "")

    def test_disappear_cancels_timers(self):
        settings = ButtonSettings(file="job.py", schedule="5", action_id="j")
        self.controller.will_appear(self.button, settings)
        self.controller.short_press(self.button, ButtonSettings(file="job.py", action_id="j"))
        schedule = self.controller.start_schedule(self.button, settings, 5)
        pending = list(self.state(settings).pending)
        self.assertEqual(len(pending), 1)

        self.controller.will_disappear(self.button, settings)
        self.assertFalse(schedule.active)
        self.assertEqual(self.state(settings).pending, [])
        self.assertTrue(all(call.cancelled for call in pending))

    def test_disappear_without_schedule_is_safe(self):
        settings = ButtonSettings(file="job.py", action_id="j")
        self.controller.will_disappear(self.button, settings)
        self.controller.will_appear(self.button, settings)
        self.controller.will_disappear(self.button, settings)
        self.assertFalse(self.controller.is_scheduled("j"))

    def test_buttons_are_tracked_independently(self):
        other = FakeButton(4)
        first = ButtonSettings(file="a.py", schedule="5", action_id="one")
        second = ButtonSettings(file="b.py", schedule="7", action_id="two")
        self.controller.will_appear(self.button, first)
        self.controller.will_appear(other, second)
        self.controller.short_press(self.button, first)
        self.controller.short_press(other, second)

        self.controller.will_disappear(self.button, first)
        self.assertFalse(self.controller.is_scheduled("one"))
        self.assertTrue(self.controller.is_scheduled("two"))


if __name__ == '__main__':
    unittest.main()
