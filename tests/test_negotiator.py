import asyncio
import logging

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from matchcall.config.settings import settings
from matchcall.services.webrtc import (
    MediaAcquisitionFailed,
    NegotiationState,
    PeerSessionNegotiator,
    RedisSignalingChannel,
    SignalingFailed,
    SignalingMessage,
    TrackStream,
)

MATCH_ID = "match-1"
ALICE = "alice"
BOB = "bob"


class FakeTrack:
    def __init__(self, kind):
        self.kind = kind
        self.enabled = True
        self.stopped = False

    def stop(self):
        self.stopped = True


class FakeMediaDevices:
    def __init__(self, error=None, on_capture=None):
        self.error = error
        self.on_capture = on_capture
        self.calls = []
        self.stream = None

    async def get_user_media(self, audio, video):
        self.calls.append((audio, video))
        if self.on_capture is not None:
            await self.on_capture()
        if self.error is not None:
            raise self.error
        tracks = [FakeTrack("audio")]
        if video:
            tracks.append(FakeTrack("video"))
        self.stream = TrackStream(tracks)
        return self.stream


class FakePeerConnection:
    def __init__(self, ice_servers):
        self.ice_servers = ice_servers
        self.handlers = {}
        self.tracks = []
        self.local_description = None
        self.remote_description = None
        self.connection_state = "new"
        self.candidates = []
        self.reject_candidates = False
        self.closed = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def add_track(self, track, stream):
        self.tracks.append(track)

    async def create_offer(self):
        return {"type": "offer", "sdp": "offer-sdp"}

    async def create_answer(self):
        return {"type": "answer", "sdp": "answer-sdp"}

    async def set_local_description(self, description):
        self.local_description = description

    async def set_remote_description(self, description):
        self.remote_description = description

    async def add_ice_candidate(self, candidate):
        if self.reject_candidates:
            raise ValueError("malformed candidate")
        self.candidates.append(candidate)

    async def close(self):
        self.closed = True
        self.connection_state = "closed"

    async def emit(self, event, *args):
        await self.handlers[event](*args)


class SignalingHub:
    """In-memory broadcast topic; messages are delivered on flush()."""

    def __init__(self):
        self.channels = {}
        self.queue = []
        self.log = []

    async def flush(self):
        while self.queue:
            message = self.queue.pop(0)
            channel = self.channels.get(message.to)
            if channel is not None and channel.handler is not None:
                await channel.handler(message)


class FakeChannel:
    def __init__(self, match_id, user_id, hub=None, fail_open=False):
        self.match_id = match_id
        self.user_id = user_id
        self.hub = hub
        self.fail_open = fail_open
        self.handler = None
        self.on_lost = None
        self.sent = []
        self.closed = False

    async def open(self, handler, on_lost=None):
        if self.fail_open:
            raise SignalingFailed("redis unavailable")
        self.handler = handler
        self.on_lost = on_lost
        if self.hub is not None:
            self.hub.channels[self.user_id] = self

    async def send(self, message):
        self.sent.append(message)
        if self.hub is not None:
            self.hub.log.append(message)
            self.hub.queue.append(message)

    async def close(self):
        self.closed = True

    def sent_types(self):
        return [m.type for m in self.sent]


class Harness:
    """One negotiator plus the fakes it was built with."""

    def __init__(self, user_id=ALICE, other_id=BOB, call_type="video", media=None, hub=None, fail_open=False):
        self.media = media or FakeMediaDevices()
        self.pcs = []
        self.channels = []
        self.ended = 0

        def pc_factory(ice_servers):
            pc = FakePeerConnection(ice_servers)
            self.pcs.append(pc)
            return pc

        def channel_factory(match_id, uid):
            channel = FakeChannel(match_id, uid, hub=hub, fail_open=fail_open)
            self.channels.append(channel)
            return channel

        def on_end():
            self.ended += 1

        self.negotiator = PeerSessionNegotiator(
            MATCH_ID,
            user_id,
            other_id,
            call_type,
            media_devices=self.media,
            peer_connection_factory=pc_factory,
            signaling_factory=channel_factory,
            on_call_end=on_end,
        )

    @property
    def session(self):
        return self.negotiator.session

    @property
    def pc(self):
        return self.pcs[-1]

    @property
    def channel(self):
        return self.channels[-1]

    async def receive(self, message_type, data=None, sender=None):
        message = SignalingMessage(
            type=message_type,
            data=data,
            sender=sender or self.negotiator.other_user_id,
            to=self.negotiator.user_id,
        )
        await self.channel.handler(message)


OFFER = {"type": "offer", "sdp": "remote-offer"}
ANSWER = {"type": "answer", "sdp": "remote-answer"}
CANDIDATE = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.2 54321 typ host", "sdpMid": "0", "sdpMLineIndex": 0}


async def test_start_call_sends_offer():
    h = Harness(call_type="video")

    session = await h.negotiator.start_call()

    assert session.state == NegotiationState.OFFERING
    assert session.is_connecting is True
    assert h.media.calls == [(True, True)]
    assert h.pc.ice_servers == settings.ICE_SERVERS
    assert [t.kind for t in h.pc.tracks] == ["audio", "video"]
    assert h.pc.local_description == {"type": "offer", "sdp": "offer-sdp"}

    offer = h.channel.sent[0]
    assert offer.type == "offer"
    assert offer.sender == ALICE
    assert offer.to == BOB
    assert offer.data["sdp"] == "offer-sdp"


async def test_voice_call_captures_audio_only():
    h = Harness(call_type="voice")

    await h.negotiator.start_call()

    assert h.media.calls == [(True, False)]
    assert [t.kind for t in h.pc.tracks] == ["audio"]


async def test_answer_then_remote_track_becomes_active_once(caplog):
    h = Harness(user_id=BOB, other_id=ALICE)

    await h.negotiator.answer_call()
    assert h.session.state == NegotiationState.AWAITING_OFFER
    assert h.channel.sent == []

    await h.receive("offer", OFFER)
    assert h.pc.remote_description == OFFER
    assert h.session.state == NegotiationState.CONNECTING
    assert h.channel.sent_types() == ["answer"]
    assert h.channel.sent[0].data["sdp"] == "answer-sdp"

    with caplog.at_level(logging.INFO, logger="matchcall.services.webrtc.negotiator"):
        await h.pc.emit("track", FakeTrack("audio"), None)
        await h.pc.emit("track", FakeTrack("video"), None)
        await h.pc.emit("connectionstatechange", "connected")

    assert h.session.state == NegotiationState.ACTIVE
    assert h.session.is_active is True
    assert h.session.is_connecting is False
    assert len(h.session.remote_stream) == 2
    assert sum("is active" in r.getMessage() for r in caplog.records) == 1


async def test_answer_received_while_offering():
    h = Harness()
    await h.negotiator.start_call()

    await h.receive("answer", ANSWER)
    assert h.pc.remote_description == ANSWER
    assert h.session.state == NegotiationState.CONNECTING

    await h.pc.emit("connectionstatechange", "connected")
    assert h.session.state == NegotiationState.ACTIVE


async def test_stray_answer_is_ignored():
    h = Harness(user_id=BOB, other_id=ALICE)
    await h.negotiator.answer_call()

    await h.receive("answer", ANSWER)

    assert h.pc.remote_description is None
    assert h.session.state == NegotiationState.AWAITING_OFFER


async def test_early_candidate_is_queued_without_error():
    h = Harness(user_id=BOB, other_id=ALICE)
    await h.negotiator.answer_call()

    await h.receive("ice-candidate", CANDIDATE)

    assert h.pc.candidates == []
    assert h.session.state == NegotiationState.AWAITING_OFFER
    assert h.session.pending_candidates == [CANDIDATE]

    await h.receive("offer", OFFER)
    assert h.pc.candidates == [CANDIDATE]
    assert h.session.pending_candidates == []


async def test_candidate_without_call_is_dropped():
    h = Harness()
    await h.negotiator.open_signaling()

    await h.receive("ice-candidate", CANDIDATE)

    assert h.pcs == []
    assert h.session.pending_candidates == []
    assert h.session.state == NegotiationState.IDLE


async def test_rejected_candidate_is_skipped():
    h = Harness()
    await h.negotiator.start_call()
    await h.receive("answer", ANSWER)
    h.pc.reject_candidates = True

    await h.receive("ice-candidate", CANDIDATE)

    assert h.pc.candidates == []
    assert h.session.state == NegotiationState.CONNECTING
    assert h.session.error is None


async def test_local_candidates_are_sent_to_peer():
    h = Harness()
    await h.negotiator.start_call()

    await h.pc.emit("icecandidate", CANDIDATE)
    await h.pc.emit("icecandidate", None)

    assert h.channel.sent_types() == ["offer", "ice-candidate"]
    assert h.channel.sent[1].data == CANDIDATE


async def test_end_call_releases_everything():
    h = Harness()
    await h.negotiator.start_call()
    await h.receive("answer", ANSWER)
    remote = FakeTrack("audio")
    await h.pc.emit("track", remote, None)
    local_tracks = h.media.stream.get_tracks()
    pc, channel = h.pc, h.channel

    await h.negotiator.end_call()

    assert all(t.stopped and not t.enabled for t in local_tracks)
    assert remote.stopped and not remote.enabled
    assert pc.closed
    assert channel.sent_types()[-1] == "call-end"
    assert channel.closed

    session = h.session
    assert session.state == NegotiationState.ENDED
    assert session.is_active is False
    assert session.is_connecting is False
    assert session.is_muted is False
    assert session.is_video_off is False
    assert session.error is None
    assert session.local_stream is None
    assert session.peer_connection is None
    assert h.ended == 1

    await h.negotiator.end_call()
    assert h.ended == 1
    assert channel.sent_types().count("call-end") == 1


async def test_media_failure_ends_in_error():
    h = Harness(media=FakeMediaDevices(error=MediaAcquisitionFailed("Permission denied")))

    session = await h.negotiator.start_call()

    assert session.state == NegotiationState.ERROR
    assert "Permission denied" in session.error
    assert session.is_connecting is False
    assert h.pcs == []
    assert h.channels == []
    assert h.ended == 1


async def test_signaling_failure_ends_in_error():
    h = Harness(fail_open=True)

    session = await h.negotiator.start_call()

    assert session.state == NegotiationState.ERROR
    assert "redis unavailable" in session.error
    assert all(t.stopped for t in h.media.stream.get_tracks())
    assert h.pcs == []


async def test_remote_call_end_does_not_echo():
    h = Harness()
    await h.negotiator.start_call()
    await h.receive("answer", ANSWER)
    await h.pc.emit("connectionstatechange", "connected")
    channel = h.channel

    await h.receive("call-end", {})

    assert h.session.state == NegotiationState.ENDED
    assert "call-end" not in channel.sent_types()
    assert channel.closed
    assert h.ended == 1


async def test_connection_failure_is_reported():
    h = Harness()
    await h.negotiator.start_call()
    await h.receive("answer", ANSWER)
    channel = h.channel

    await h.pc.emit("connectionstatechange", "failed")

    assert h.session.state == NegotiationState.ERROR
    assert "failed" in h.session.error
    assert h.session.is_active is False
    assert channel.sent_types()[-1] == "call-end"
    assert h.ended == 1


async def test_messages_for_someone_else_are_ignored():
    h = Harness(user_id=BOB, other_id=ALICE)
    await h.negotiator.answer_call()

    message = SignalingMessage(type="offer", data=OFFER, sender=ALICE, to="carol")
    await h.negotiator.handle_signaling_message(message)

    assert h.pc.remote_description is None


async def test_toggle_mute_and_video():
    h = Harness(call_type="video")
    await h.negotiator.start_call()
    audio = h.media.stream.get_audio_tracks()[0]
    video = h.media.stream.get_video_tracks()[0]

    assert h.negotiator.toggle_mute() is True
    assert audio.enabled is False
    assert video.enabled is True

    assert h.negotiator.toggle_video() is True
    assert video.enabled is False

    assert h.negotiator.toggle_mute() is False
    assert audio.enabled is True
    assert h.session.is_muted is False
    assert h.session.is_video_off is True


async def test_toggle_without_media_is_noop():
    h = Harness()
    assert h.negotiator.toggle_mute() is False
    assert h.negotiator.toggle_video() is False


async def test_second_start_while_in_progress_is_ignored():
    h = Harness()
    await h.negotiator.start_call()

    await h.negotiator.start_call()

    assert len(h.pcs) == 1
    assert h.channel.sent_types() == ["offer"]


async def test_new_call_after_end():
    h = Harness()
    await h.negotiator.start_call()
    await h.negotiator.end_call()

    session = await h.negotiator.start_call()

    assert session.state == NegotiationState.OFFERING
    assert len(h.pcs) == 2


async def test_message_handler_can_be_replaced():
    h = Harness()
    await h.negotiator.open_signaling()
    received = []

    async def recorder(message):
        received.append(message.type)

    h.negotiator.message_handler = recorder
    await h.receive("offer", OFFER)

    assert received == ["offer"]


async def test_offer_arriving_during_media_capture_is_answered():
    hub = SignalingHub()
    h = None

    async def deliver_offer():
        await h.receive("offer", OFFER)

    h = Harness(user_id=BOB, other_id=ALICE, media=FakeMediaDevices(on_capture=deliver_offer), hub=hub)
    await h.negotiator.open_signaling()

    session = await h.negotiator.answer_call()

    assert h.pc.remote_description == OFFER
    assert session.state == NegotiationState.CONNECTING
    assert h.channel.sent_types() == ["answer"]


async def test_two_peers_negotiate_and_hang_up():
    hub = SignalingHub()
    alice = Harness(user_id=ALICE, other_id=BOB, hub=hub)
    bob = Harness(user_id=BOB, other_id=ALICE, hub=hub)

    await bob.negotiator.answer_call()
    await alice.negotiator.start_call()
    await hub.flush()

    assert bob.pc.remote_description["sdp"] == "offer-sdp"
    assert alice.pc.remote_description["sdp"] == "answer-sdp"
    assert alice.session.state == NegotiationState.CONNECTING
    assert bob.session.state == NegotiationState.CONNECTING

    await alice.pc.emit("icecandidate", CANDIDATE)
    await hub.flush()
    assert bob.pc.candidates == [CANDIDATE]

    await alice.pc.emit("connectionstatechange", "connected")
    await bob.pc.emit("track", FakeTrack("audio"), None)
    assert alice.session.state == NegotiationState.ACTIVE
    assert bob.session.state == NegotiationState.ACTIVE

    await alice.negotiator.end_call()
    await hub.flush()

    assert alice.session.state == NegotiationState.ENDED
    assert bob.session.state == NegotiationState.ENDED
    assert [m.type for m in hub.log].count("call-end") == 1
    assert alice.ended == 1
    assert bob.ended == 1


async def test_close_releases_idle_channel():
    h = Harness()
    channel = await h.negotiator.open_signaling()

    await h.negotiator.close()

    assert channel.closed
    assert h.session.channel is None
    assert h.ended == 0


async def test_lost_signaling_aborts_negotiating_session():
    h = Harness()
    await h.negotiator.answer_call()
    assert h.session.state == NegotiationState.AWAITING_OFFER

    await h.channel.on_lost(SignalingFailed("subscription dropped"))

    assert h.session.state == NegotiationState.ERROR
    assert "Signaling lost" in h.session.error
    assert h.pc.closed
    assert h.channel.closed
    assert h.ended == 1


async def test_lost_signaling_keeps_active_call():
    h = Harness()
    await h.negotiator.start_call()
    await h.receive("answer", ANSWER)
    await h.pc.emit("connectionstatechange", "connected")

    await h.channel.on_lost(SignalingFailed("subscription dropped"))

    assert h.session.state == NegotiationState.ACTIVE
    assert h.session.error is None
    assert h.ended == 0


def _redis_negotiator(fake_redis, user_id, other_id, ended):
    channels = []

    def channel_factory(match_id, uid):
        channel = RedisSignalingChannel(match_id, uid, client=fake_redis)
        channels.append(channel)
        return channel

    negotiator = PeerSessionNegotiator(
        MATCH_ID,
        user_id,
        other_id,
        "voice",
        media_devices=FakeMediaDevices(),
        peer_connection_factory=FakePeerConnection,
        signaling_factory=channel_factory,
        on_call_end=lambda: ended.append(user_id),
    )
    return negotiator, channels


async def test_remote_hang_up_over_redis_stops_reader_cleanly(fake_redis):
    ended = []
    bob, channels = _redis_negotiator(fake_redis, BOB, ALICE, ended)
    await bob.answer_call()
    reader = channels[0]._reader

    alice = RedisSignalingChannel(MATCH_ID, ALICE, client=fake_redis)
    await alice.send(SignalingMessage(type="call-end", data={}, sender=ALICE, to=BOB))
    await asyncio.wait_for(reader, timeout=3)

    assert bob.session.state == NegotiationState.ENDED
    assert ended == [BOB]
    assert not reader.cancelled()
    assert reader.exception() is None
    assert not channels[0].is_open


async def test_dropped_redis_subscription_fails_negotiation(fake_redis):
    ended = []
    bob, channels = _redis_negotiator(fake_redis, BOB, ALICE, ended)
    await bob.answer_call()
    channel = channels[0]
    reader = channel._reader

    async def broken(**kwargs):
        raise RedisConnectionError("connection reset")

    channel._pubsub.get_message = broken
    await asyncio.wait_for(reader, timeout=3)

    assert reader.exception() is None
    assert bob.session.state == NegotiationState.ERROR
    assert "Signaling lost" in bob.session.error
    assert ended == [BOB]
