"""
Peer Session Negotiator - drives one peer-to-peer call end to end.

State machine (per PeerSession):

    idle --start_call--> offering --answer--> connecting --connected/track--> active
    idle --answer_call--> awaiting_offer --offer--> connecting --connected/track--> active
    any --end_call / call-end / failed|disconnected--> ended (error if a failure caused it)

Signaling messages travel over a broadcast channel shared by both
participants; every message carries sender and recipient. Remote ICE
candidates that arrive before the remote description are queued and
flushed once it is set.
"""
import inspect
import logging
from typing import Any, Callable, List, Optional

from matchcall.config.settings import settings
from matchcall.config.constants import TERMINAL_CONNECTION_STATES

from .exceptions import ConnectionFailed, SignalingFailed
from .media import TrackStream
from .messages import SignalingMessage
from .protocols import (
    IceCandidate,
    MediaDevices,
    MediaStream,
    MediaTrack,
    MessageHandler,
    PeerConnection,
    PeerConnectionFactory,
    SessionDescription,
    SignalingChannel,
    SignalingChannelFactory,
)
from .session import NegotiationState, PeerSession
from .signaling import RedisSignalingChannel

logger = logging.getLogger(__name__)

CallEndCallback = Callable[[], Any]


class PeerSessionNegotiator:
    """
    Negotiates and tears down the local side of one call.

    Channel callbacks go through `message_handler` and teardown notifies
    through `on_call_end`; both can be replaced at any time and the next
    event uses the new value.
    """

    def __init__(
        self,
        match_id: str,
        user_id: str,
        other_user_id: str,
        call_type: str,
        media_devices: MediaDevices,
        peer_connection_factory: PeerConnectionFactory,
        signaling_factory: SignalingChannelFactory = RedisSignalingChannel,
        ice_servers: Optional[List[str]] = None,
        on_call_end: Optional[CallEndCallback] = None,
    ):
        self.match_id = match_id
        self.user_id = user_id
        self.other_user_id = other_user_id
        self.call_type = call_type
        self.ice_servers = ice_servers if ice_servers is not None else list(settings.ICE_SERVERS)

        self._media_devices = media_devices
        self._peer_connection_factory = peer_connection_factory
        self._signaling_factory = signaling_factory

        self.session = PeerSession(call_type=call_type)
        self.message_handler: MessageHandler = self.handle_signaling_message
        self.on_call_end = on_call_end

        self._ending = False
        self._early_offer: Optional[SessionDescription] = None

    # === Signaling plumbing ===

    async def open_signaling(self) -> SignalingChannel:
        """Open the (match, self) signaling channel if it is not open yet."""
        if self.session.channel is None:
            channel = self._signaling_factory(self.match_id, self.user_id)
            await channel.open(self._dispatch, on_lost=self._on_signaling_lost)
            self.session.channel = channel
        return self.session.channel

    async def _dispatch(self, message: SignalingMessage) -> None:
        await self.message_handler(message)

    async def _on_signaling_lost(self, error: Exception) -> None:
        """Abort a session that is still negotiating; an active call keeps running."""
        if self.session.is_connecting:
            await self._fail("Signaling lost", error)
        else:
            logger.warning(f"[Negotiator] {error}")

    async def _send(self, message_type: str, data: Any) -> None:
        channel = self.session.channel
        if channel is None:
            raise SignalingFailed("Signaling channel is not open")
        await channel.send(
            SignalingMessage(type=message_type, data=data, sender=self.user_id, to=self.other_user_id)
        )

    # === Call setup ===

    def _prepare(self) -> bool:
        """Reset state for a new attempt. False if one is already running."""
        if self.session.in_progress or self.session.is_connecting:
            logger.warning(f"[Negotiator] {self.user_id} already has a call in progress on match {self.match_id}")
            return False

        if self.session.is_finished:
            self.session = PeerSession(call_type=self.call_type)
        self.session.error = None
        self.session.is_connecting = True
        self._early_offer = None
        return True

    async def _acquire_media(self) -> MediaStream:
        stream = await self._media_devices.get_user_media(
            audio=True,
            video=self.call_type == "video"
        )
        self.session.local_stream = stream
        return stream

    def _create_peer_connection(self, stream: MediaStream) -> PeerConnection:
        pc = self._peer_connection_factory(self.ice_servers)
        pc.on("icecandidate", self._on_local_candidate)
        pc.on("track", self._on_remote_track)
        pc.on("connectionstatechange", self._on_connection_state_change)
        self.session.peer_connection = pc

        for track in stream.get_tracks():
            pc.add_track(track, stream)
        return pc

    async def start_call(self) -> PeerSession:
        """Initiator path: capture media, send an offer."""
        if not self._prepare():
            return self.session

        try:
            stream = await self._acquire_media()
            await self.open_signaling()
            pc = self._create_peer_connection(stream)

            offer = await pc.create_offer()
            await pc.set_local_description(offer)
            self.session.state = NegotiationState.OFFERING
            await self._send("offer", offer)
            logger.info(f"[Negotiator] {self.user_id} sent {self.call_type} offer to {self.other_user_id}")
        except Exception as e:
            await self._fail("Could not start call", e)
        return self.session

    async def answer_call(self) -> PeerSession:
        """Responder path: capture media and wait for the initiator's offer."""
        if not self._prepare():
            return self.session

        try:
            stream = await self._acquire_media()
            await self.open_signaling()
            self._create_peer_connection(stream)
            self.session.state = NegotiationState.AWAITING_OFFER
            logger.info(f"[Negotiator] {self.user_id} waiting for offer from {self.other_user_id}")
        except Exception as e:
            await self._fail("Could not answer call", e)
            return self.session

        if self._early_offer is not None:
            offer, self._early_offer = self._early_offer, None
            await self._accept_offer(offer)
        return self.session

    # === Incoming signaling ===

    async def handle_signaling_message(self, message: SignalingMessage) -> None:
        if not message.is_for(self.user_id):
            return

        if message.type == "call-end":
            if self.session.in_progress or self.session.is_connecting:
                logger.info(f"[Negotiator] {message.sender} ended the call")
                await self._teardown(notify_peer=False)
            return

        if message.type == "offer":
            if self.session.peer_connection is None:
                if self.session.is_connecting and self.session.state == NegotiationState.IDLE:
                    # answer_call is still capturing media
                    self._early_offer = message.data
                return
            await self._accept_offer(message.data)
        elif message.type == "answer":
            await self._accept_answer(message.data)
        elif message.type == "ice-candidate":
            await self._add_remote_candidate(message.data)

    async def _accept_offer(self, offer: SessionDescription) -> None:
        pc = self.session.peer_connection
        if pc is None or self.session.state not in (NegotiationState.AWAITING_OFFER, NegotiationState.IDLE):
            logger.debug(f"[Negotiator] Ignoring offer in state {self.session.state.value}")
            return

        try:
            await pc.set_remote_description(offer)
            answer = await pc.create_answer()
            await pc.set_local_description(answer)
            self._advance(NegotiationState.CONNECTING)
            await self._send("answer", answer)
            await self._flush_candidates()
        except Exception as e:
            await self._fail("Signaling error", e)

    async def _accept_answer(self, answer: SessionDescription) -> None:
        pc = self.session.peer_connection
        if pc is None or self.session.state != NegotiationState.OFFERING:
            logger.debug(f"[Negotiator] Ignoring answer in state {self.session.state.value}")
            return

        try:
            await pc.set_remote_description(answer)
            self._advance(NegotiationState.CONNECTING)
            await self._flush_candidates()
        except Exception as e:
            await self._fail("Signaling error", e)

    async def _add_remote_candidate(self, candidate: Optional[IceCandidate]) -> None:
        if not candidate:
            return

        pc = self.session.peer_connection
        if pc is None or pc.remote_description is None:
            if self.session.in_progress or self.session.is_connecting:
                self.session.pending_candidates.append(candidate)
                logger.debug(f"[Negotiator] Queued early ICE candidate ({len(self.session.pending_candidates)} pending)")
            return

        await self._apply_candidate(pc, candidate)

    async def _apply_candidate(self, pc: PeerConnection, candidate: IceCandidate) -> None:
        try:
            await pc.add_ice_candidate(candidate)
        except Exception as e:
            logger.warning(f"[Negotiator] Skipping rejected ICE candidate: {e}")

    async def _flush_candidates(self) -> None:
        pc = self.session.peer_connection
        queued, self.session.pending_candidates = self.session.pending_candidates, []
        for candidate in queued:
            if pc is None or self.session.is_finished:
                return
            await self._apply_candidate(pc, candidate)

    # === Peer connection events ===

    async def _on_local_candidate(self, candidate: Optional[IceCandidate]) -> None:
        if candidate is None or self.session.is_finished:
            return
        try:
            await self._send("ice-candidate", candidate)
        except SignalingFailed as e:
            logger.warning(f"[Negotiator] Could not send ICE candidate: {e}")

    async def _on_remote_track(self, track: MediaTrack, stream: Optional[MediaStream] = None) -> None:
        if self.session.is_finished:
            track.stop()
            return

        if stream is not None:
            self.session.remote_stream = stream
        else:
            if self.session.remote_stream is None:
                self.session.remote_stream = TrackStream()
            self.session.remote_stream.add_track(track)

        logger.info(f"[Negotiator] Received remote {track.kind} track from {self.other_user_id}")
        self._mark_active()

    async def _on_connection_state_change(self, state: str) -> None:
        logger.info(f"[Negotiator] Connection state for {self.user_id}: {state}")
        if state == "connected":
            self._mark_active()
        elif state in TERMINAL_CONNECTION_STATES:
            await self._fail("Connection lost", ConnectionFailed(f"peer connection {state}"))

    # === State helpers ===

    def _advance(self, state: NegotiationState) -> None:
        """Move forward unless the session is already active or finished."""
        if self.session.state in (NegotiationState.ACTIVE, NegotiationState.ENDED, NegotiationState.ERROR):
            return
        self.session.state = state

    def _mark_active(self) -> None:
        if self.session.is_active or self.session.is_finished:
            return
        self.session.is_connecting = False
        self.session.is_active = True
        self.session.state = NegotiationState.ACTIVE
        logger.info(f"[Negotiator] Call between {self.user_id} and {self.other_user_id} is active")

    # === Local controls ===

    def toggle_mute(self) -> bool:
        """Enable/disable local audio tracks in place. Returns the new muted flag."""
        stream = self.session.local_stream
        if stream is None:
            return self.session.is_muted
        muted = not self.session.is_muted
        for track in stream.get_audio_tracks():
            track.enabled = not muted
        self.session.is_muted = muted
        return muted

    def toggle_video(self) -> bool:
        """Enable/disable local video tracks in place. Returns the new video-off flag."""
        stream = self.session.local_stream
        if stream is None:
            return self.session.is_video_off
        video_off = not self.session.is_video_off
        for track in stream.get_video_tracks():
            track.enabled = not video_off
        self.session.is_video_off = video_off
        return video_off

    # === Teardown ===

    async def end_call(self) -> None:
        """Hang up locally and tell the peer."""
        await self._teardown(notify_peer=True)

    async def close(self) -> None:
        """Leave the match page: end any running call, then release the channel."""
        if self.session.in_progress or self.session.is_connecting:
            await self._teardown(notify_peer=True)
        elif self.session.channel is not None:
            channel, self.session.channel = self.session.channel, None
            await channel.close()

    async def _fail(self, context: str, exc: Exception) -> None:
        if self.session.is_finished:
            logger.debug(f"[Negotiator] {context} after session ended: {exc}")
            return
        message = f"{context}: {exc}"
        logger.error(f"[Negotiator] {message}")
        await self._teardown(notify_peer=True, error=message)

    async def _teardown(self, notify_peer: bool, error: Optional[str] = None) -> None:
        session = self.session
        if self._ending or session.is_finished:
            return
        if not (session.in_progress or session.is_connecting):
            return

        self._ending = True
        try:
            for stream in (session.local_stream, session.remote_stream):
                if stream is None:
                    continue
                for track in stream.get_tracks():
                    track.stop()
                    track.enabled = False

            pc, session.peer_connection = session.peer_connection, None
            if pc is not None:
                try:
                    await pc.close()
                except Exception as e:
                    logger.warning(f"[Negotiator] Error closing peer connection: {e}")

            if notify_peer and session.channel is not None:
                try:
                    await self._send("call-end", {})
                except SignalingFailed as e:
                    logger.warning(f"[Negotiator] Could not notify peer of call end: {e}")

            channel, session.channel = session.channel, None
            if channel is not None:
                try:
                    await channel.close()
                except Exception as e:
                    logger.warning(f"[Negotiator] Error closing signaling channel: {e}")

            session.local_stream = None
            session.remote_stream = None
            session.reset_flags()
            session.error = error
            session.state = NegotiationState.ERROR if error else NegotiationState.ENDED
            self._early_offer = None
        finally:
            self._ending = False

        logger.info(f"[Negotiator] Call on match {self.match_id} ended for {self.user_id} ({session.state.value})")

        callback = self.on_call_end
        if callback is not None:
            result = callback()
            if inspect.isawaitable(result):
                await result
