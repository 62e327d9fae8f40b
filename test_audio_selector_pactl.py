import subprocess
from unittest.mock import MagicMock, call, patch

import pytest

import audio_selector_pactl as pactl
from audio_selector_mixer import Direction, MixerDevice, MixerEvent, MixerUnavailableError, signal_name

# Sample output from `pactl list sinks` (LC_ALL=C)
SAMPLE_PACTL_SINKS_OUTPUT = (
    "Sink #52\n"
    "\tState: SUSPENDED\n"
    "\tName: alsa_output.pci-0000_00_1f.3.analog-stereo\n"
    "\tDescription: Built-in Audio Analog Stereo\n"
    "\tDriver: PipeWire\n"
    "\tProperties:\n"
    "\t\talsa.card_name = \"HDA Intel PCH\"\n"
    "\t\tdevice.description = \"Built-in Audio Analog Stereo\"\n"
    "\tPorts:\n"
    "\t\tanalog-output-speaker: Speakers (type: Speaker, priority: 10000, availability unknown)\n"
    "\t\tanalog-output-headphones: Headphones (type: Headphones, priority: 9900, not available)\n"
    "\tActive Port: analog-output-speaker\n"
    "\tFormats:\n"
    "\t\tpcm\n"
    "\n"
    "Sink #61\n"
    "\tState: RUNNING\n"
    "\tName: bluez_output.00_1B_66_AA_BB_CC.1\n"
    "\tDescription: WH-1000XM4\n"
    "\tDriver: PipeWire\n"
    "\tFormats:\n"
    "\t\tpcm\n"
)

# Sample output from `pactl list sources`
SAMPLE_PACTL_SOURCES_OUTPUT = (
    "Source #53\n"
    "\tName: alsa_output.pci-0000_00_1f.3.analog-stereo.monitor\n"
    "\tDescription: Monitor of Built-in Audio Analog Stereo\n"
    "\n"
    "Source #54\n"
    "\tName: alsa_input.pci-0000_00_1f.3.analog-stereo\n"
    "\tDescription: Built-in Audio Analog Stereo\n"
    "\tPorts:\n"
    "\t\t[In] Mic1: Microphone (type: Mic, priority: 100, availability unknown)\n"
    "\tActive Port: [In] Mic1\n"
)

SAMPLE_PACTL_INFO_OUTPUT = (
    "Server String: /run/user/1000/pulse/native\n"
    "Server Name: PulseAudio (on PipeWire 1.0.5)\n"
    "Default Sink: bluez_output.00_1B_66_AA_BB_CC.1\n"
    "Default Source: alsa_input.pci-0000_00_1f.3.analog-stereo\n"
)


def fake_pactl(sinks=SAMPLE_PACTL_SINKS_OUTPUT, sources=SAMPLE_PACTL_SOURCES_OUTPUT, info=SAMPLE_PACTL_INFO_OUTPUT):
    outputs = {
        "pactl list sinks": sinks,
        "pactl list sources": sources,
        "pactl info": info,
    }

    def run_cmd(cmd):
        if cmd in outputs:
            return 0, outputs[cmd].strip(), ""
        return 0, "", ""
    return run_cmd


def record_events(mixer):
    events = []
    for event in MixerEvent:
        for direction in Direction:
            mixer.subscribe(event, direction,
                            lambda device_id, e=event, d=direction: events.append((e, d, device_id)))
    return events


def test_parse_sinks_uses_active_port():
    devices = pactl.parse_devices(SAMPLE_PACTL_SINKS_OUTPUT, "sink")

    assert set(devices) == {52, 61}
    assert devices[52] == MixerDevice(52, "Speakers", "Built-in Audio Analog Stereo",
                                      "alsa_output.pci-0000_00_1f.3.analog-stereo")
    assert devices[52].label == "Speakers - Built-in Audio Analog Stereo"


def test_parse_sink_without_ports():
    device = pactl.parse_devices(SAMPLE_PACTL_SINKS_OUTPUT, "sink")[61]
    assert device.label == "WH-1000XM4"
    assert device.origin is None
    assert device.handle == "bluez_output.00_1B_66_AA_BB_CC.1"


def test_parse_sources_skips_monitors():
    devices = pactl.parse_devices(SAMPLE_PACTL_SOURCES_OUTPUT, "source")
    assert list(devices) == [54]
    assert devices[54].label == "Microphone - Built-in Audio Analog Stereo"


def test_parse_empty_output():
    assert pactl.parse_devices("", "sink") == {}


def test_parse_default_devices():
    defaults = pactl.parse_default_devices(SAMPLE_PACTL_INFO_OUTPUT)
    assert defaults[Direction.OUTPUT] == "bluez_output.00_1B_66_AA_BB_CC.1"
    assert defaults[Direction.INPUT] == "alsa_input.pci-0000_00_1f.3.analog-stereo"


@pytest.mark.parametrize("line, expected", [
    ("Event 'new' on sink #52", ("new", "sink", 52)),
    ("Event 'remove' on source #7\n", ("remove", "source", 7)),
    ("Event 'change' on server #-1", ("change", "server", -1)),
    ("Event 'new' on sink-input #140", ("new", "sink-input", 140)),
    ("garbage", None),
])
def test_parse_subscribe_event(line, expected):
    assert pactl.parse_subscribe_event(line) == expected


@patch('audio_selector_pactl.run_cmd')
def test_open_fails_without_server(mock_run_cmd):
    mock_run_cmd.return_value = (1, "", "Connection failure: Connection refused")
    mixer = pactl.PactlMixerService()

    with pytest.raises(MixerUnavailableError):
        mixer.open()
    assert not mixer.is_open


@patch('audio_selector_pactl.run_cmd', side_effect=fake_pactl())
def test_announce_adds_devices_before_active(mock_run_cmd):
    mixer = pactl.PactlMixerService()
    events = record_events(mixer)

    mixer.announce_devices()

    assert events == [
        (MixerEvent.DEVICE_ADDED, Direction.INPUT, 54),
        (MixerEvent.DEVICE_ADDED, Direction.OUTPUT, 52),
        (MixerEvent.DEVICE_ADDED, Direction.OUTPUT, 61),
        (MixerEvent.ACTIVE_CHANGED, Direction.INPUT, 54),
        (MixerEvent.ACTIVE_CHANGED, Direction.OUTPUT, 61),
    ]
    assert mixer.lookup_device(Direction.OUTPUT, 61).description == "WH-1000XM4"
    assert mixer.lookup_device(Direction.OUTPUT, 99) is None


@patch('audio_selector_pactl.run_cmd')
def test_new_and_removed_sinks_are_diffed(mock_run_cmd):
    mock_run_cmd.side_effect = fake_pactl()
    mixer = pactl.PactlMixerService()
    mixer.announce_devices()
    events = record_events(mixer)

    only_bluetooth = SAMPLE_PACTL_SINKS_OUTPUT.split("\n\n")[1]
    mock_run_cmd.side_effect = fake_pactl(sinks=only_bluetooth)
    mixer.handle_event("Event 'remove' on sink #52")

    assert events == [(MixerEvent.DEVICE_REMOVED, Direction.OUTPUT, 52)]
    assert mixer.lookup_device(Direction.OUTPUT, 52) is None

    mock_run_cmd.side_effect = fake_pactl()
    mixer.handle_event("Event 'new' on sink #52")

    assert events[-1] == (MixerEvent.DEVICE_ADDED, Direction.OUTPUT, 52)


@patch('audio_selector_pactl.run_cmd')
def test_server_change_emits_only_moved_defaults(mock_run_cmd):
    mock_run_cmd.side_effect = fake_pactl()
    mixer = pactl.PactlMixerService()
    mixer.announce_devices()
    events = record_events(mixer)

    mixer.handle_event("Event 'change' on server #-1")
    assert events == []

    info = SAMPLE_PACTL_INFO_OUTPUT.replace("bluez_output.00_1B_66_AA_BB_CC.1",
                                            "alsa_output.pci-0000_00_1f.3.analog-stereo")
    mock_run_cmd.side_effect = fake_pactl(info=info)
    mixer.handle_event("Event 'change' on server #-1")

    assert events == [(MixerEvent.ACTIVE_CHANGED, Direction.OUTPUT, 52)]


@patch('audio_selector_pactl.run_cmd', side_effect=fake_pactl())
def test_unrelated_events_are_ignored(mock_run_cmd):
    mixer = pactl.PactlMixerService()
    mixer.announce_devices()
    calls = mock_run_cmd.call_count

    mixer.handle_event("Event 'new' on sink-input #140")
    mixer.handle_event("Event 'change' on card #3")
    mixer.handle_event("not an event")

    assert mock_run_cmd.call_count == calls


@patch('audio_selector_pactl.run_cmd', return_value=(0, "", ""))
def test_change_active_device(mock_run_cmd):
    mixer = pactl.PactlMixerService()

    mixer.change_active_device(Direction.OUTPUT, MixerDevice(61, "WH-1000XM4", None, "bluez_output.00_1B_66_AA_BB_CC.1"))
    mixer.change_active_device(Direction.INPUT, MixerDevice(54, "Microphone", None, "my mic"))

    mock_run_cmd.assert_any_call("pactl set-default-sink bluez_output.00_1B_66_AA_BB_CC.1")
    mock_run_cmd.assert_any_call("pactl set-default-source 'my mic'")


def test_unsubscribe_stops_delivery():
    mixer = pactl.PactlMixerService()
    callback = MagicMock()
    handle = mixer.subscribe(MixerEvent.DEVICE_ADDED, Direction.OUTPUT, callback)

    mixer.emit(signal_name(MixerEvent.DEVICE_ADDED, Direction.OUTPUT), 3)
    mixer.unsubscribe(handle)
    mixer.emit(signal_name(MixerEvent.DEVICE_ADDED, Direction.OUTPUT), 4)

    callback.assert_called_once_with(3)


def test_close_without_open_is_a_noop():
    mixer = pactl.PactlMixerService()
    mixer.close()
    assert not mixer.is_open


@patch('audio_selector_pactl.run_cmd')
def test_get_default_volume(mock_run_cmd):
    mock_run_cmd.return_value = (0, "Volume: front-left: 42598 /  65% / -11.23 dB,   front-right: 42598 /  65% / -11.23 dB", "")
    assert pactl.get_default_volume(Direction.OUTPUT) == 65
    mock_run_cmd.assert_called_once_with("pactl get-sink-volume @DEFAULT_SINK@")


@patch('audio_selector_pactl.run_cmd', return_value=(1, "", "failure"))
def test_get_default_volume_error(mock_run_cmd):
    assert pactl.get_default_volume(Direction.INPUT) is None


@patch('audio_selector_pactl.subprocess.run', side_effect=FileNotFoundError)
def test_run_cmd_without_pactl(mock_run):
    code, out, err = pactl.run_cmd("pactl info")
    assert code == -1
    assert "pactl" in err


@patch('audio_selector_pactl.run_cmd')
def test_port_switch_refreshes_label(mock_run_cmd):
    info = SAMPLE_PACTL_INFO_OUTPUT.replace("bluez_output.00_1B_66_AA_BB_CC.1",
                                            "alsa_output.pci-0000_00_1f.3.analog-stereo")
    mock_run_cmd.side_effect = fake_pactl(info=info)
    mixer = pactl.PactlMixerService()
    mixer.announce_devices()
    events = record_events(mixer)

    headphones = SAMPLE_PACTL_SINKS_OUTPUT.replace("Active Port: analog-output-speaker",
                                                   "Active Port: analog-output-headphones")
    mock_run_cmd.side_effect = fake_pactl(sinks=headphones, info=info)
    mixer.handle_event("Event 'change' on sink #52")

    assert mixer.lookup_device(Direction.OUTPUT, 52).label == "Headphones - Built-in Audio Analog Stereo"
    assert events == [
        (MixerEvent.DEVICE_REMOVED, Direction.OUTPUT, 52),
        (MixerEvent.DEVICE_ADDED, Direction.OUTPUT, 52),
        (MixerEvent.ACTIVE_CHANGED, Direction.OUTPUT, 52),
    ]


@patch('audio_selector_pactl.run_cmd', side_effect=fake_pactl())
def test_sink_change_without_new_label_emits_nothing(mock_run_cmd):
    mixer = pactl.PactlMixerService()
    mixer.announce_devices()
    events = record_events(mixer)

    mixer.handle_event("Event 'change' on sink #61")

    assert events == []


def test_subscriber_output_joins_split_lines():
    mixer = pactl.PactlMixerService()
    mixer._subscriber = MagicMock()
    mixer._watch_id = 7
    chunks = [b"Event 'new' on si", b"nk #52\nEvent 'change' on server #-1\nEv", b""]

    with patch('audio_selector_pactl.os.read', side_effect=chunks), \
            patch.object(mixer, 'handle_event') as handle_event:
        assert mixer._on_subscriber_output(None, pactl.GLib.IOCondition.IN) == pactl.GLib.SOURCE_CONTINUE
        handle_event.assert_not_called()

        assert mixer._on_subscriber_output(None, pactl.GLib.IOCondition.IN) == pactl.GLib.SOURCE_CONTINUE
        assert handle_event.call_args_list == [call("Event 'new' on sink #52"),
                                               call("Event 'change' on server #-1")]
        assert mixer._pending == "Ev"

        assert mixer._on_subscriber_output(None, pactl.GLib.IOCondition.IN) == pactl.GLib.SOURCE_REMOVE
        assert mixer._watch_id is None


def test_subscriber_hangup_stops_watch():
    mixer = pactl.PactlMixerService()
    mixer._subscriber = MagicMock()
    mixer._watch_id = 7

    with patch('audio_selector_pactl.os.read') as mock_read:
        assert mixer._on_subscriber_output(None, pactl.GLib.IOCondition.HUP) == pactl.GLib.SOURCE_REMOVE
    mock_read.assert_not_called()
    assert mixer._watch_id is None


@pytest.fixture
def opened_mixer():
    with patch('audio_selector_pactl.run_cmd', return_value=(0, "", "")), \
            patch('audio_selector_pactl.subprocess.Popen') as mock_popen, \
            patch('audio_selector_pactl.GLib') as mock_glib:
        mock_glib.io_add_watch.return_value = 11
        mock_glib.idle_add.return_value = 12
        mixer = pactl.PactlMixerService()
        mixer.open()
        yield mixer, mock_popen.return_value, mock_glib


def test_open_starts_subscriber(opened_mixer):
    mixer, process, mock_glib = opened_mixer

    assert mixer.is_open
    mock_glib.io_add_watch.assert_called_once()
    assert mock_glib.io_add_watch.call_args.args[0] is process.stdout
    mock_glib.idle_add.assert_called_once_with(mixer.announce_devices)


def test_close_releases_sources_and_process(opened_mixer):
    mixer, process, mock_glib = opened_mixer

    mixer.close()

    assert mock_glib.source_remove.call_args_list == [call(11), call(12)]
    process.terminate.assert_called_once()
    process.wait.assert_called_once_with(timeout=2)
    process.kill.assert_not_called()
    process.stdout.close.assert_called_once()
    assert not mixer.is_open
    assert mixer.lookup_device(Direction.OUTPUT, 52) is None

    mixer.close()
    process.terminate.assert_called_once()


def test_close_kills_stuck_subscriber(opened_mixer):
    mixer, process, _ = opened_mixer
    process.wait.side_effect = [subprocess.TimeoutExpired("pactl subscribe", 2), 0]

    mixer.close()

    process.kill.assert_called_once()
    assert process.wait.call_count == 2
    assert not mixer.is_open


@patch('audio_selector_pactl.run_cmd', return_value=(0, "", ""))
@patch('audio_selector_pactl.subprocess.Popen', side_effect=FileNotFoundError("pactl"))
def test_open_fails_when_subscriber_cannot_start(mock_popen, mock_run_cmd):
    mixer = pactl.PactlMixerService()

    with pytest.raises(MixerUnavailableError):
        mixer.open()
    assert not mixer.is_open
