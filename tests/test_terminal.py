import unittest
from unittest import mock

from src.donut import terminal
from src.donut.terminal import TerminalController


class KeyPollingTests(unittest.TestCase):
    def _controller_reading(self, data: bytes, fail_after: int | None = None) -> TerminalController:
        controller = TerminalController()
        controller._stdin_fd = 7
        pending = [bytes([byte]) for byte in data]
        reads = []

        def fake_select(readers, writers, errors, timeout):
            return (readers if pending else [], [], [])

        def fake_read(fd, size):
            if fail_after is not None and len(reads) >= fail_after:
                raise OSError("stdin closed")
            reads.append(fd)
            return pending.pop(0)

        for patcher in (
            mock.patch.object(terminal.select, "select", side_effect=fake_select),
            mock.patch.object(terminal.os, "read", side_effect=fake_read),
        ):
            patcher.start()
            self.addCleanup(patcher.stop)
        return controller

    def test_no_keys_without_a_tty(self) -> None:
        controller = TerminalController()
        self.assertFalse(controller.input_enabled)
        self.assertEqual(controller.poll_keys(), [])

    def test_returns_pending_keys_in_order(self) -> None:
        controller = self._controller_reading(b" pq")
        self.assertEqual(controller.poll_keys(), [" ", "p", "q"])
        self.assertEqual(controller.poll_keys(), [])

    def test_escape_sequences_are_dropped(self) -> None:
        controller = self._controller_reading(b"\x1b[A \x1b[15~q")
        self.assertEqual(controller.poll_keys(), [" ", "q"])

    def test_ctrl_c_raises_keyboard_interrupt(self) -> None:
        controller = self._controller_reading(b"a\x03")
        with self.assertRaises(KeyboardInterrupt):
            controller.poll_keys()

    def test_read_error_keeps_keys_read_so_far(self) -> None:
        controller = self._controller_reading(b"pq", fail_after=1)
        self.assertEqual(controller.poll_keys(), ["p"])


class TerminalSetupTests(unittest.TestCase):
    def test_hides_and_restores_cursor_without_tty(self) -> None:
        with mock.patch.object(terminal.sys, "stdout") as stdout, mock.patch.object(terminal.sys, "stdin") as stdin:
            stdin.isatty.return_value = False
            with TerminalController() as controller:
                self.assertFalse(controller.input_enabled)
                controller.draw("frame\n")
        written = "".join(call.args[0] for call in stdout.write.call_args_list)
        self.assertTrue(written.startswith("\033[2J"))
        self.assertIn("\033[?25l", written)
        self.assertIn("\033[Hframe\n", written)
        self.assertTrue(written.endswith("\033[?25h"))

    def test_size_falls_back_when_not_a_terminal(self) -> None:
        fallback = terminal.os.terminal_size((100, 40))
        with mock.patch.object(terminal.shutil, "get_terminal_size", return_value=fallback) as get_size:
            self.assertEqual(TerminalController().size_tuple(), (100, 40))
        get_size.assert_called_once_with(fallback=(100, 40))


if __name__ == "__main__":
    unittest.main()
