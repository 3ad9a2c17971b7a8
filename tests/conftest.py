import asyncio
import pytest
import OSC_Bridge.state as state
from OSC_Bridge.connections.codec import decode_args
from OSC_Bridge.connections.errors import PortInUseError


class FakeTransport:
    """In-memory stand-in for OscTransport.

    ``responder(address, values)`` is called for every sent message; a
    non-None return is queued as the reply on the same address.
    """

    def __init__(self, local_host, local_port, remote_host, remote_port,
                 on_error=None, responder=None, open_error=None, send_error=None):
        self.local_host = local_host
        self.local_port = local_port
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.on_error = on_error
        self.responder = responder
        self.open_error = open_error
        self.send_error = send_error
        self.inbound = asyncio.Queue()
        self.sent = []
        self.is_open = False
        self.open_calls = 0

    async def open(self):
        self.open_calls += 1
        # a real bind suspends, which is where concurrent openers interleave
        await asyncio.sleep(0)
        if self.open_error is not None:
            raise self.open_error
        self.is_open = True

    async def close(self):
        self.is_open = False

    def send(self, address, typed_args):
        if not self.is_open:
            raise ConnectionError("OSC transport is not open")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((address, list(typed_args)))
        if self.responder is not None:
            reply = self.responder(address, decode_args(typed_args))
            if reply is not None:
                self.inbound.put_nowait((address, list(reply)))

    def reply(self, address, values):
        self.inbound.put_nowait((address, list(values)))


def transport_factory(created, **options):
    """Build a transport factory that records every FakeTransport it makes."""
    def factory(local_host, local_port, remote_host, remote_port, on_error=None):
        transport = FakeTransport(local_host, local_port, remote_host, remote_port,
                                  on_error=on_error, **options)
        created.append(transport)
        return transport
    return factory


def alive(address, values):
    if address == "/live/test":
        return ["ok"]
    return None


def param(name, value, low, high, quantized=False, display=None):
    return {"name": name, "value": value, "min": low, "max": high,
            "is_quantized": 1 if quantized else 0,
            "value_string": display if display is not None else str(value)}


class FakeLive:
    """Session-shaped double that answers AbletonOSC getters from a dict model."""

    # browser names insert_device can find, with their device type ids
    LOADABLE = {"Wavetable": 2, "Compressor": 1}

    def __init__(self):
        self.song = {
            "tempo": 120.0,
            "is_playing": 0,
            "current_song_time": 0.0,
            "metronome": 0,
            "signature_numerator": 4,
            "signature_denominator": 4,
            "session_record_status": 0,
        }
        self.tracks = [
            {"name": "Drums", "volume": 0.85, "panning": 0.0, "mute": 0, "solo": 0, "arm": 0,
             "has_midi_input": 1, "has_audio_input": 0,
             "input_routing_type": "All Ins", "output_routing_type": "Master",
             "is_foldable": 0, "is_grouped": 0,
             "clips/name": ["Beat", None], "send": [0.0, 0.5]},
            {"name": "Vocals", "volume": 0.0, "panning": -0.5, "mute": 1, "solo": 0, "arm": 0,
             "has_midi_input": 0, "has_audio_input": 1,
             "input_routing_type": "Ext. In", "output_routing_type": "Master",
             "is_foldable": 0, "is_grouped": 0,
             "clips/name": [None, "Verse"], "send": [0.25, 0.0]},
        ]
        self.devices = [
            [
                {"name": "Drum Rack", "class_name": "DrumGroupDevice", "type": 2,
                 "parameters": [param("Device On", 1.0, 0.0, 1.0, True, "On"),
                                param("Macro 1", 0.0, 0.0, 127.0)]},
                {"name": "Reverb", "class_name": "Reverb", "type": 1,
                 "parameters": [param("Device On", 1.0, 0.0, 1.0, True, "On"),
                                param("Dry/Wet", 0.5, 0.0, 1.0, display="50 %")]},
            ],
            [
                {"name": "Reverb", "class_name": "Reverb", "type": 1,
                 "parameters": [param("Decay Time", 2.0, 0.2, 60.0, display="2.00 s"),
                                param("Device On", 1.0, 0.0, 1.0, True, "On")]},
            ],
        ]
        self.clips = {
            (0, 0): {"name": "Beat", "length": 4.0, "loop_start": 0.0, "loop_end": 4.0,
                     "looping": 1, "is_midi_clip": 1,
                     "notes": [36, 0.0, 0.5, 100, 0, 38, 1.0, 0.5, 90, 1]},
            (1, 1): {"name": "Verse", "length": 16.0, "loop_start": 0.0, "loop_end": 16.0,
                     "looping": 1, "is_midi_clip": 0, "notes": []},
        }
        self.scenes = ["Intro", "Verse"]
        self.sent = []
        self.queries = []
        self.timeouts = {}

    def _track_value(self, t, key):
        devices = self.devices[t]
        if key == "num_devices":
            return len(devices)
        if key.startswith("devices/"):
            return [d[key[len("devices/"):]] for d in devices]
        return self.tracks[t][key]

    async def query(self, address, args=None, timeout_ms=5000):
        args = list(args or [])
        self.queries.append((address, args))
        self.timeouts[address] = timeout_ms
        if address == "/live/test":
            return ["ok"]
        if address.startswith("/live/song/get/"):
            key = address[len("/live/song/get/"):]
            if key == "num_tracks":
                return [len(self.tracks)]
            if key == "num_scenes":
                return [len(self.scenes)]
            return [self.song[key]]
        if address == "/live/track/get/send":
            t, s = args
            return [t, s, self.tracks[t]["send"][s]]
        if address.startswith("/live/track/get/"):
            t = args[0]
            value = self._track_value(t, address[len("/live/track/get/"):])
            if isinstance(value, list):
                return [t] + value
            return [t, value]
        if address == "/live/track/insert_device":
            t, name = args
            if name not in self.LOADABLE:
                return [t, -1]
            self.devices[t].append({"name": name, "class_name": name.replace(" ", ""),
                                    "type": self.LOADABLE[name],
                                    "parameters": [param("Device On", 1.0, 0.0, 1.0, True, "On")]})
            return [t, len(self.devices[t]) - 1]
        if address == "/live/scene/get/name":
            return [args[0], self.scenes[args[0]]]
        if address == "/live/clip_slot/get/has_clip":
            t, s = args
            return [t, s, 1 if (t, s) in self.clips else 0]
        if address.startswith("/live/clip/get/"):
            t, s = args[:2]
            value = self.clips[(t, s)][address[len("/live/clip/get/"):]]
            if isinstance(value, list):
                return [t, s] + value
            return [t, s, value]
        if address.startswith("/live/device/get/parameters/"):
            t, d = args
            prop = address[len("/live/device/get/parameters/"):]
            return [t, d] + [p[prop] for p in self.devices[t][d]["parameters"]]
        if address.startswith("/live/device/get/parameter/"):
            t, d, p = args
            prop = address[len("/live/device/get/parameter/"):]
            return [t, d, p, self.devices[t][d]["parameters"][p][prop]]
        if address.startswith("/live/device/get/"):
            t, d = args
            device = self.devices[t][d]
            prop = address[len("/live/device/get/"):]
            if prop == "num_parameters":
                return [t, d, len(device["parameters"])]
            return [t, d, device[prop]]
        raise AssertionError(f"unexpected query {address} {args}")

    async def send(self, address, args=None):
        args = list(args or [])
        self.sent.append((address, args))
        if address == "/live/clip_slot/create_clip":
            t, s, length = args
            self.clips[(t, s)] = {"name": "", "length": length, "loop_start": 0.0,
                                  "loop_end": length, "looping": 1, "is_midi_clip": 1,
                                  "notes": []}
        elif address == "/live/clip/set/name":
            t, s, name = args
            self.clips[(t, s)]["name"] = name
        elif address in ("/live/song/create_midi_track", "/live/song/create_audio_track"):
            midi = address.endswith("midi_track")
            position = len(self.tracks) if args[0] == -1 else args[0]
            self.tracks.insert(position, {
                "name": "MIDI" if midi else "Audio", "volume": 0.85, "panning": 0.0,
                "mute": 0, "solo": 0, "arm": 0,
                "has_midi_input": 1 if midi else 0, "has_audio_input": 0 if midi else 1,
                "input_routing_type": "All Ins", "output_routing_type": "Master",
                "is_foldable": 0, "is_grouped": 0,
                "clips/name": [None] * len(self.scenes), "send": [0.0, 0.0]})
            self.devices.insert(position, [])

    def status(self):
        return {"state": "verified", "host": "127.0.0.1", "send_port": 11001,
                "receive_port": 11000, "pending_requests": 0, "last_error": None}


@pytest.fixture(autouse=True)
def reset_state():
    """Reset global state between tests."""
    original_session = state.osc_session
    original_read_only = state.read_only
    original_deletes = dict(state.pending_deletes)
    yield
    state.osc_session = original_session
    state.read_only = original_read_only
    state.pending_deletes.clear()
    state.pending_deletes.update(original_deletes)


@pytest.fixture
def live():
    """Install a FakeLive as the process-wide session."""
    fake = FakeLive()
    state.osc_session = fake
    return fake
