"""Tests for the per-session automation loop."""
import asyncio

import pytest

from minessh.constants import STOP_MESSAGE
from minessh.llm.client import NetworkError, StatusError
from minessh.models import OrchestratorState, Role


async def start_turn(orchestrator, text):
    """Send operator input and let the model call get dispatched."""
    task = orchestrator.send_user_message(text)
    await asyncio.sleep(0)
    return task


async def reply(gateway, orchestrator, content):
    task = orchestrator._model_task
    gateway.resolve(content)
    await task


@pytest.mark.asyncio
async def test_end_to_end_task_settles_after_final_answer(orchestrator, gateway, transport):
    await start_turn(orchestrator, "list files in /tmp")
    assert orchestrator.state == OrchestratorState.AWAITING_MODEL

    await reply(gateway, orchestrator, "<run>ls /tmp</run>")
    assert transport.writes == [("s1", b"ls /tmp\n")]
    assert orchestrator.state == OrchestratorState.AWAITING_COMPLETION
    assert orchestrator.current_directive == "ls /tmp"

    orchestrator.handle_data(b"a.txt\nb.txt\nuser@host:~$ ")
    assert orchestrator.state == OrchestratorState.AWAITING_MODEL
    assert orchestrator.current_directive is None
    await asyncio.sleep(0)
    assert len(gateway.calls) == 2

    follow_up = gateway.calls[1].messages[-1]
    assert follow_up.role == Role.USER
    assert "a.txt\nb.txt\nuser@host:~$" in follow_up.content
    assert "[System Warning]" not in follow_up.content

    await reply(gateway, orchestrator, "There are two files: a.txt and b.txt.")
    assert orchestrator.state == OrchestratorState.IDLE
    summaries = [m for m in orchestrator.transcript if m.content == "There are two files: a.txt and b.txt."]
    assert len(summaries) == 1
    assert len(gateway.calls) == 2
    assert len(transport.writes) == 1


@pytest.mark.asyncio
async def test_routine_observation_is_hidden(orchestrator, gateway):
    await start_turn(orchestrator, "uptime please")
    await reply(gateway, orchestrator, "<run>uptime</run>")
    orchestrator.handle_data("up 3 days\nroot@box:~# ")

    observation = orchestrator.transcript[-1]
    assert observation.role == Role.SYSTEM
    assert observation.hidden
    assert observation.content.startswith("Output:\nup 3 days")
    assert observation not in orchestrator.messages()
    assert observation in orchestrator.messages(include_hidden=True)
    orchestrator.close()


@pytest.mark.asyncio
async def test_timeout_is_fed_back_with_warning(orchestrator, gateway, clock):
    await start_turn(orchestrator, "install nginx")
    await reply(gateway, orchestrator, "<run>apt install nginx</run>")
    orchestrator.handle_data("Do you want to continue? [Y/n] ")
    assert orchestrator.state == OrchestratorState.AWAITING_COMPLETION

    orchestrator.tick(clock.now + 4)
    assert orchestrator.state == OrchestratorState.AWAITING_COMPLETION

    orchestrator.tick(clock.now + 6)
    observation = orchestrator.transcript[-1]
    assert not observation.hidden
    assert "timed out (5s)" in observation.content
    assert orchestrator.state == OrchestratorState.AWAITING_MODEL

    await asyncio.sleep(0)
    follow_up = gateway.calls[-1].messages[-1].content
    assert "Do you want to continue? [Y/n]" in follow_up
    assert "[System Warning]: The command timed out" in follow_up
    orchestrator.close()


@pytest.mark.asyncio
async def test_auto_run_off_returns_to_idle_after_completion(orchestrator, gateway):
    orchestrator.set_auto_run(False)
    await start_turn(orchestrator, "who am i")
    await reply(gateway, orchestrator, "<run>whoami</run>")
    orchestrator.handle_data("root\n# ")

    assert orchestrator.state == OrchestratorState.IDLE
    assert orchestrator.transcript[-1].content == "Output:\nroot\n#"
    await asyncio.sleep(0)
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_stop_discards_late_model_reply(orchestrator, gateway, transport):
    task = await start_turn(orchestrator, "clean up /var/tmp")
    orchestrator.stop()
    snapshot = list(orchestrator.transcript)

    gateway.resolve("<run>rm -rf /var/tmp/cache</run>")
    await task

    assert orchestrator.transcript == snapshot
    assert transport.writes == []
    assert orchestrator.auto_run is False
    assert orchestrator.state == OrchestratorState.STOPPED
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_stop_discards_late_gateway_error(orchestrator, gateway):
    task = await start_turn(orchestrator, "check disk")
    orchestrator.stop()
    snapshot = list(orchestrator.transcript)

    gateway.fail(NetworkError("connection refused"))
    await task

    assert orchestrator.transcript == snapshot
    assert orchestrator.state == OrchestratorState.STOPPED


@pytest.mark.asyncio
async def test_stop_during_execution_ignores_later_output(orchestrator, gateway):
    await start_turn(orchestrator, "tail the log")
    await reply(gateway, orchestrator, "<run>tail -f /var/log/syslog</run>")
    generation = orchestrator.generation

    orchestrator.stop()
    assert orchestrator.generation == generation + 1
    assert orchestrator.current_directive is None
    snapshot = list(orchestrator.transcript)

    orchestrator.handle_data("line\n$ ")
    orchestrator.tick(10_000)
    assert orchestrator.transcript == snapshot
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_stop_appends_instruction_and_new_message_resumes(orchestrator, gateway):
    await start_turn(orchestrator, "first task")
    orchestrator.stop()
    assert orchestrator.transcript[-1].role == Role.SYSTEM
    assert orchestrator.transcript[-1].content == STOP_MESSAGE
    assert not orchestrator.transcript[-1].hidden

    await start_turn(orchestrator, "second task")
    assert orchestrator.state == OrchestratorState.AWAITING_MODEL
    assert len(gateway.calls) == 2
    sent = gateway.calls[1].messages
    assert sent[0].role == Role.SYSTEM
    assert [m.role for m in sent].count(Role.SYSTEM) == 1
    assert any(m.content == STOP_MESSAGE and m.role == Role.USER for m in sent)

    # The first call resolving now must not disturb the second turn
    gateway.resolve("<run>ls</run>")
    await asyncio.sleep(0)
    assert orchestrator.state == OrchestratorState.AWAITING_MODEL
    await reply(gateway, orchestrator, "Done.")
    assert orchestrator.state == OrchestratorState.IDLE


@pytest.mark.asyncio
async def test_toggling_auto_run_triggers_no_model_call(orchestrator, gateway):
    orchestrator.set_auto_run(False)
    orchestrator.set_auto_run(True)
    await asyncio.sleep(0)
    assert gateway.calls == []
    assert orchestrator.state == OrchestratorState.IDLE


@pytest.mark.asyncio
async def test_gateway_error_is_visible_and_keeps_auto_run(orchestrator, gateway):
    await start_turn(orchestrator, "restart nginx")
    task = orchestrator._model_task
    gateway.fail(StatusError(500, "internal"))
    await task

    last = orchestrator.transcript[-1]
    assert last.role == Role.SYSTEM
    assert not last.hidden
    assert last.content == "Error: AI API Error: 500 - internal"
    assert orchestrator.state == OrchestratorState.IDLE
    assert orchestrator.auto_run is True


@pytest.mark.asyncio
async def test_busy_session_rejects_new_message(orchestrator, gateway):
    await start_turn(orchestrator, "first")
    assert orchestrator.send_user_message("second") is None
    assert [m.content for m in orchestrator.transcript] == ["first"]
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_empty_message_is_ignored(orchestrator, gateway):
    assert orchestrator.send_user_message("   ") is None
    assert orchestrator.transcript == []


@pytest.mark.asyncio
async def test_write_file_directive_is_encoded(orchestrator, gateway, transport):
    await start_turn(orchestrator, "create a motd")
    await reply(gateway, orchestrator, '<write_file path="/etc/motd">\nWelcome\n</write_file>')

    assert orchestrator.current_directive == "Writing file: /etc/motd"
    (session_id, data), = transport.writes
    assert session_id == "s1"
    assert data == b'echo "V2VsY29tZQ==" | base64 -d > "/etc/motd" && echo "File written to /etc/motd"\n'
    orchestrator.close()


@pytest.mark.asyncio
async def test_empty_run_sends_enter(orchestrator, gateway, transport):
    await start_turn(orchestrator, "press enter")
    await reply(gateway, orchestrator, "<run></run>")
    assert transport.writes == [("s1", b"\n")]
    assert orchestrator.current_directive == "(Sending Enter)"
    orchestrator.close()


@pytest.mark.asyncio
async def test_transport_failure_returns_to_idle(orchestrator, gateway, transport, transport_error):
    transport.error = transport_error
    await start_turn(orchestrator, "ls")
    await reply(gateway, orchestrator, "<run>ls</run>")

    assert orchestrator.state == OrchestratorState.IDLE
    assert not orchestrator.detector.armed
    assert orchestrator.transcript[-1].content == "Error: Session s1 is closed"


@pytest.mark.asyncio
async def test_data_outside_window_is_ignored(orchestrator):
    orchestrator.handle_data("motd banner\nroot@box:~# ")
    assert orchestrator.transcript == []
    assert orchestrator.detector.buffer == ""


@pytest.mark.asyncio
async def test_select_persona_changes_system_prompt(orchestrator, gateway):
    orchestrator.select_persona("logs")
    note = orchestrator.transcript[-1]
    assert note.content == "Switched persona to: Log Analyst"
    assert not note.hidden

    await start_turn(orchestrator, "why did sshd fail")
    context = gateway.calls[0]
    assert context.messages[0].role == Role.SYSTEM
    assert "You read logs carefully." in context.system_prompt
    assert "You manage Linux servers." not in context.system_prompt
    assert [m.role for m in context.messages].count(Role.SYSTEM) == 1


def test_select_unknown_persona_raises(orchestrator):
    with pytest.raises(KeyError):
        orchestrator.select_persona("missing")
    assert orchestrator.transcript == []


@pytest.mark.asyncio
async def test_ticker_times_out_without_manual_ticks(orchestrator, gateway, clock):
    orchestrator.tick_interval = 0.01
    await start_turn(orchestrator, "sleep")
    await reply(gateway, orchestrator, "<run>sleep 100</run>")
    clock.advance(6)
    await asyncio.sleep(0.05)

    assert orchestrator.state == OrchestratorState.AWAITING_MODEL
    assert "timed out" in orchestrator.transcript[-1].content
    assert len(gateway.calls) == 2


@pytest.mark.asyncio
async def test_prompt_split_mid_character_is_detected(orchestrator, gateway):
    await start_turn(orchestrator, "list files")
    await reply(gateway, orchestrator, "<run>ls</run>")

    data = "a.txt\n~ ➜ ".encode("utf-8")
    split = data.index(b"\xe2") + 1
    orchestrator.handle_data(data[:split])
    assert orchestrator.state == OrchestratorState.AWAITING_COMPLETION
    orchestrator.handle_data(data[split:])

    assert orchestrator.state == OrchestratorState.AWAITING_MODEL
    assert orchestrator.transcript[-1].content == "Output:\na.txt\n~ ➜"
    orchestrator.close()


@pytest.mark.asyncio
async def test_unexpected_gateway_failure_returns_to_idle(orchestrator, gateway):
    await start_turn(orchestrator, "hello")
    task = orchestrator._model_task
    gateway.fail(KeyError(0))
    await task

    last = orchestrator.transcript[-1]
    assert last.role == Role.SYSTEM
    assert not last.hidden
    assert last.content.startswith("Error: ")
    assert orchestrator.state == OrchestratorState.IDLE
    assert not orchestrator.busy


@pytest.mark.asyncio
async def test_follow_up_context_carries_output_once(orchestrator, gateway):
    await start_turn(orchestrator, "disk usage")
    await reply(gateway, orchestrator, "<run>df -h</run>")
    orchestrator.handle_data("/dev/sda1 42%\nroot@box:~# ")
    await asyncio.sleep(0)

    messages = gateway.calls[-1].messages
    carrying_output = [m for m in messages if "/dev/sda1 42%" in m.content]
    assert len(carrying_output) == 1
    assert carrying_output[0] is messages[-1]
    assert orchestrator.transcript[-1].content.startswith("Output:\n/dev/sda1 42%")
    orchestrator.close()
