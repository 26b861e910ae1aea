"""
Console front end for the pet voice chat.
"""

import asyncio
import argparse
from typing import Optional

from pydantic import ValidationError

try:
    from .controller import ConversationController
    from .config import configure_logging, load_config, print_config_summary
    from .factory import ProviderFactory
    from .models.data_models import Message, SessionStatus
    from .personas import list_profiles
    from .utils.error_handling import ComponentError
except ImportError:
    from voice_chat.controller import ConversationController
    from voice_chat.config import configure_logging, load_config, print_config_summary
    from voice_chat.factory import ProviderFactory
    from voice_chat.models.data_models import Message, SessionStatus
    from voice_chat.personas import list_profiles
    from voice_chat.utils.error_handling import ComponentError


QUIT_COMMANDS = {'/quit', '/exit'}


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Pet voice chat",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('--log-level', help='Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    chat = subparsers.add_parser(
        'chat',
        help='Interactive session (empty line toggles the mic, text is sent, /quit exits)'
    )
    chat.add_argument('--persona', help='Persona id (fox, dolphin, owl)')
    chat.add_argument('--mute', action='store_true', help='Show replies without speaking them')
    chat.add_argument('--no-greeting', action='store_true', help='Skip the persona greeting')

    subparsers.add_parser('personas', help='List available personas')
    subparsers.add_parser('config', help='Show configuration')
    subparsers.add_parser('status', help='Show session status')

    return parser


def build_controller(persona: Optional[str] = None, mute: bool = False) -> ConversationController:
    """Create providers from configuration and wire them into a controller."""
    overrides = {'playback_provider': 'silent'} if mute else {}
    config = load_config(**overrides)
    providers = ProviderFactory.create_all_providers(config.to_legacy_dict())

    return ConversationController(
        capture=providers['capture'],
        playback=providers['playback'],
        reply=providers['reply'],
        session_config=config.session,
        persona_id=persona,
        on_notice=_print_notice,
        on_interim_change=_print_interim,
    )


def _print_notice(error: ComponentError) -> None:
    print(f"\n⚠️  {error.component}: {error.message}")


def _print_interim(text: str) -> None:
    if text:
        print(f"   … {text}")


def _print_message(controller: ConversationController, message: Message) -> None:
    if message.is_user:
        print(f"🧒 {message.text}")
    else:
        persona = controller.persona
        print(f"{persona.avatar} {persona.display_name}: {message.text}")


async def cmd_chat(controller: ConversationController, greet: bool = True):
    """Run the interactive console session."""
    print("\n" + "="*60)
    print(f"Chatting with {controller.persona.avatar} {controller.persona.display_name}")
    print("="*60)
    print("Enter = toggle microphone, text = send, /quit = exit\n")

    shown = 0

    def on_transcript(messages) -> None:
        nonlocal shown
        if len(messages) < shown:
            shown = 0
        for message in messages[shown:]:
            _print_message(controller, message)
        shown = len(messages)

    unsubscribe = controller.store.subscribe(on_transcript)
    loop = asyncio.get_running_loop()

    try:
        if greet:
            await controller.greet()

        while True:
            line = await loop.run_in_executor(None, input, "")
            line = line.strip()

            if line in QUIT_COMMANDS:
                break

            if not line:
                listening = await controller.toggle_listening()
                if listening:
                    print("🎙️  Listening... (Enter to stop)")
                elif controller.status == SessionStatus.PROCESSING:
                    print("⏳ Still thinking, try again in a moment")
                continue

            await controller.send_message(line)
    finally:
        unsubscribe()


def cmd_personas():
    """List personas."""
    print("\n" + "="*60)
    print("Personas")
    print("="*60 + "\n")

    for profile in list_profiles():
        print(f"{profile.avatar} {profile.id:<8} {profile.display_name}  (voice: {profile.voice})")
        print(f"   {profile.greeting}")
    print()


def cmd_config():
    """Show configuration."""
    print("\n" + "="*60)
    print("Configuration")
    print("="*60 + "\n")

    print_config_summary()


async def cmd_status(controller: ConversationController):
    """Show session status."""
    print("\n" + "="*60)
    print("Session Status")
    print("="*60 + "\n")

    status = controller.get_status()
    for key in ('status', 'persona', 'messages', 'capture_armed', 'playback_active'):
        print(f"{key}: {status[key]}")

    print(f"\nState Machine:")
    for key, value in status['state'].items():
        print(f"  {key}: {value}")

    print(f"\nErrors:")
    for key, value in status['errors'].items():
        print(f"  {key}: {value}")

    print()


async def async_main():
    """Async main function."""
    parser = create_parser()
    args = parser.parse_args()

    if args.log_level:
        try:
            configure_logging(level=args.log_level)
        except ValueError as e:
            parser.error(str(e))

    if not args.command:
        parser.print_help()
        return

    if args.command == 'config':
        cmd_config()
        return

    if args.command == 'personas':
        cmd_personas()
        return

    try:
        controller = build_controller(
            persona=getattr(args, 'persona', None),
            mute=getattr(args, 'mute', False)
        )
    except ValidationError as e:
        print(f"❌ Invalid configuration:\n{e}")
        return

    try:
        async with controller:
            if args.command == 'chat':
                await cmd_chat(controller, greet=not args.no_greeting)
            elif args.command == 'status':
                await cmd_status(controller)
            else:
                print(f"Unknown command: {args.command}")
                parser.print_help()
    finally:
        await controller.cleanup()


def main():
    """Synchronous entry point."""
    try:
        configure_logging()
    except Exception as e:
        print(f"⚠️  Failed to setup logging: {e}")

    try:
        asyncio.run(async_main())
    except (KeyboardInterrupt, EOFError):
        print("\n👋 Bye")
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()


if __name__ == '__main__':
    main()
