from __future__ import annotations

import asyncio
import unittest

from hopline.errors import LineInputBusy
from hopline.line_input import LineInput, prefix_completer
from tests.helpers import feed_lines


class TestLineInput(unittest.TestCase):
    def test_submit_runs_handlers_in_order_and_awaits_coroutines(self) -> None:
        line_input = LineInput()
        calls: list[str] = []

        def first(line):
            calls.append(f"first:{line}")

        async def second(line):
            await asyncio.sleep(0)
            calls.append(f"second:{line}")

        line_input.on_line(first)
        line_input.on_line(second)
        asyncio.run(line_input.submit("hi"))

        self.assertEqual(["first:hi", "second:hi"], calls)

    def test_takeover_swaps_and_restores(self) -> None:
        completer = prefix_completer(["alpha"])
        line_input = LineInput(prompt="> ", completer=completer)
        seen: list[str | None] = []
        line_input.on_line(seen.append)

        async def scenario():
            with line_input.takeover(prompt="? ", completer=prefix_completer(["beta"])) as session:
                self.assertEqual("? ", line_input.prompt)
                self.assertEqual(["beta"], line_input.complete("b"))
                self.assertEqual(1, len(line_input.line_handlers()))
                await line_input.submit("inside")
                answer = await session.read_line()
            await line_input.submit("outside")
            return answer

        answer = asyncio.run(scenario())

        self.assertEqual("inside", answer)
        self.assertEqual(["outside"], seen)
        self.assertEqual("> ", line_input.prompt)
        self.assertIs(completer, line_input.completer)

    def test_takeover_restores_after_exception(self) -> None:
        line_input = LineInput(prompt="> ")
        before = line_input.snapshot()

        with self.assertRaises(ValueError):
            with line_input.takeover(prompt="? "):
                raise ValueError("boom")

        self.assertEqual(before, line_input.snapshot())
        self.assertFalse(line_input.taken_over)

    def test_second_takeover_is_refused(self) -> None:
        line_input = LineInput()
        with line_input.takeover():
            with self.assertRaises(LineInputBusy):
                with line_input.takeover():
                    pass
        with line_input.takeover():
            self.assertTrue(line_input.taken_over)

    def test_question_returns_the_next_line(self) -> None:
        line_input = LineInput(prompt="> ")

        async def scenario():
            answer, _ = await asyncio.gather(line_input.question("name? "), feed_lines(line_input, ["tako"]))
            return answer

        self.assertEqual("tako", asyncio.run(scenario()))
        self.assertEqual("> ", line_input.prompt)

    def test_question_after_end_of_input_returns_none(self) -> None:
        line_input = LineInput()

        async def scenario():
            await line_input.submit(None)
            return await line_input.question("again? ")

        self.assertIsNone(asyncio.run(scenario()))
        self.assertTrue(line_input.closed)

    def test_awaiting_line_tracks_the_reader(self) -> None:
        line_input = LineInput()

        async def scenario():
            states = [line_input.awaiting_line]
            task = asyncio.create_task(line_input.question(""))
            await asyncio.sleep(0)
            states.append(line_input.awaiting_line)
            await line_input.submit("x")
            states.append(line_input.awaiting_line)
            await task
            return states

        self.assertEqual([False, True, False], asyncio.run(scenario()))

    def test_complete_without_completer(self) -> None:
        self.assertEqual([], LineInput().complete("he"))
        self.assertEqual(["help", "hello"], prefix_completer(["help", "hello", "send"])("hel"))


if __name__ == "__main__":
    unittest.main()
