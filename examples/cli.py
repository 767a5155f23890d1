import argparse
import asyncio
import logging

from aiortc import VideoStreamTrack
from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder

from aionegotiate import (
    NegotiationConfiguration,
    NegotiationEngine,
    RemoteTrackEvent,
    relay,
    role_from_identifiers,
)
from aionegotiate.aiortcbinding import RTCPeerConnectionBinding
from aionegotiate.signaling import add_signaling_arguments, create_signaling


async def run(engine, player, recorder, signaling):
    @engine.on("signalingstatechange")
    def on_signalingstatechange():
        print("Signaling state is %s" % engine.signalingState)

    @engine.on("track")
    def on_track(event: RemoteTrackEvent):
        print("Receiving %s" % event.kind)
        recorder.addTrack(event.track)
        asyncio.ensure_future(recorder.start())

    @engine.on("failed")
    def on_failed(exc):
        print("Negotiation failed: %s" % exc)

    # connect signaling
    await signaling.connect()

    # add local media and send the initial offer
    if player:
        tracks = [t for t in (player.audio, player.video) if t is not None]
    else:
        tracks = [VideoStreamTrack()]
    await engine.start(tracks)

    # consume signaling
    await relay(signaling, engine)
    print("Exiting")


async def main(args):
    role = role_from_identifiers(args.local_id, args.remote_id)
    print("Negotiating as %s" % role.value)

    # create signaling and peer connection
    signaling = create_signaling(args)
    binding = RTCPeerConnectionBinding()
    engine = NegotiationEngine(
        binding, signaling, NegotiationConfiguration(role=role)
    )

    # create media source
    if args.play_from:
        player = MediaPlayer(args.play_from)
    else:
        player = None

    # create media sink
    if args.record_to:
        recorder = MediaRecorder(args.record_to)
    else:
        recorder = MediaBlackhole()

    try:
        await run(engine=engine, player=player, recorder=recorder, signaling=signaling)
    finally:
        # cleanup
        await recorder.stop()
        await signaling.close()
        await engine.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Negotiate a media session from the command line"
    )
    parser.add_argument("--local-id", required=True, help="This peer's identifier")
    parser.add_argument(
        "--remote-id", required=True, help="The remote peer's identifier"
    )
    parser.add_argument("--play-from", help="Read the media from a file and sent it.")
    parser.add_argument("--record-to", help="Write received media to a file.")
    parser.add_argument("--verbose", "-v", action="count")
    add_signaling_arguments(parser)
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        pass
