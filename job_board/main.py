"""CLI entry point for the job board client."""

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime

from job_board.config import AppConfig, load_config, validate_config
from job_board.jobs.models import Job
from job_board.messages.conversations import list_conversations
from job_board.messages.models import Message
from job_board.services import Services, build_services
from job_board.sync.results import SyncStatus
from job_board.users.models import User
from job_board.users.repository import UserExistsError
from job_board.utils.logging_config import setup_logging
from job_board.utils.validation import validate_registration

logger = logging.getLogger("job_board")


class CommandError(Exception):
    """A command could not run; the message is shown to the user."""


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job board client with offline-first sync",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Never contact the remote store",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Create an account")
    p.add_argument("--first-name", required=True)
    p.add_argument("--last-name", required=True)
    p.add_argument("--middle-name")
    p.add_argument("--email", required=True)
    p.add_argument("--phone", required=True)
    p.add_argument("--username", required=True)
    p.add_argument("--password", required=True)

    p = sub.add_parser("login", help="Sign in with email and password")
    p.add_argument("--email", required=True)
    p.add_argument("--password", required=True)

    sub.add_parser("guest", help="Continue as a guest")
    sub.add_parser("logout", help="Sign out")
    sub.add_parser("whoami", help="Show the signed-in user")

    p = sub.add_parser("post-job", help="Publish a job")
    _add_job_fields(p, required=True)

    p = sub.add_parser("update-job", help="Edit one of your jobs")
    p.add_argument("job_id", type=int)
    _add_job_fields(p, required=False)

    p = sub.add_parser("delete-job", help="Delete one of your jobs")
    p.add_argument("job_id", type=int)

    p = sub.add_parser("jobs", help="List and search jobs")
    p.add_argument("--search", default="", help="Title prefix")
    p.add_argument("--experience")
    p.add_argument("--city")
    p.add_argument("--min-salary", type=int)
    p.add_argument("--mine", action="store_true", help="Only jobs you posted")

    p = sub.add_parser("send", help="Send a message")
    p.add_argument("user_id", type=int)
    p.add_argument("text")

    p = sub.add_parser("chat", help="Show a conversation")
    p.add_argument("user_id", type=int)
    p.add_argument("--follow", action="store_true", help="Keep printing new messages")

    sub.add_parser("conversations", help="List conversations")

    p = sub.add_parser("users", help="Search users")
    p.add_argument("query", nargs="?", default="")

    p = sub.add_parser("photo", help="Change your profile photo")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--id", type=int, dest="photo_id")
    group.add_argument("--url", dest="photo_url")

    sub.add_parser("check-messages", help="Pull new messages once")
    sub.add_parser("daemon", help="Check for new messages on a schedule")
    sub.add_parser("stats", help="Print local store statistics")
    return parser.parse_args(argv)


def _add_job_fields(parser: argparse.ArgumentParser, required: bool):
    parser.add_argument("--title", required=required)
    parser.add_argument("--salary-from", type=int)
    parser.add_argument("--salary-to", type=int)
    parser.add_argument("--currency")
    parser.add_argument("--experience")
    parser.add_argument("--city")
    parser.add_argument("--description")
    parser.add_argument("--about-us")
    parser.add_argument("--required-qualities")
    parser.add_argument("--we-offer")
    parser.add_argument("--key-skills")


JOB_FIELDS = (
    "title", "salary_from", "salary_to", "experience", "city", "description",
    "about_us", "required_qualities", "we_offer", "key_skills",
)


def _status_note(status: SyncStatus) -> str:
    if status is SyncStatus.OFFLINE:
        return " (offline)"
    if status is SyncStatus.LOCAL_FALLBACK:
        return " (remote unavailable, showing local data)"
    if status is SyncStatus.FAILED:
        return " (local store error)"
    return ""


def _format_time(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


def print_job(job: Job):
    print(f"[{job.id}] {job.title}")
    details = [d for d in (job.salary_display(), job.city, job.experience) if d]
    if details:
        print("    " + " | ".join(details))


def print_message(message: Message, user_id: int):
    who = "you" if message.sender_id == user_id else str(message.sender_id)
    print(f"  {_format_time(message.timestamp)} {who}: {message.text}")


def current_user_id(services: Services) -> int:
    user_id = services.session.get_user_id()
    if user_id is None:
        raise CommandError("Not signed in. Run 'login' first.")
    return user_id


async def cmd_register(services: Services, args):
    errors = validate_registration(args.email, args.username, args.phone, args.password)
    if errors:
        raise CommandError("; ".join(errors))
    user = User(
        first_name=args.first_name,
        last_name=args.last_name,
        middle_name=args.middle_name,
        email=args.email,
        phone=args.phone,
        username=args.username.lstrip("@"),
        password=args.password,
    )
    try:
        result = await services.users.register(user)
    except UserExistsError as e:
        raise CommandError(str(e)) from e
    services.session.save_session(result.key)
    print(f"Registered {user.username} (id {result.key}){_status_note(result.status)}")


async def cmd_login(services: Services, args):
    result = await services.users.authenticate(args.email, args.password)
    if result.record is None:
        raise CommandError("Invalid email or password" + _status_note(result.status))
    services.session.save_session(result.record.id)
    print(f"Signed in as {result.record.username}{_status_note(result.status)}")


async def cmd_whoami(services: Services, args):
    if services.session.is_guest():
        print("Guest")
        return
    result = await services.users.get_by_id(current_user_id(services))
    if result.record is None:
        raise CommandError("Signed-in user no longer exists")
    user = result.record
    print(f"{user.display_name} (@{user.username}, id {user.id}) photo: {user.photo()}")


async def cmd_post_job(services: Services, args):
    employer_id = current_user_id(services)
    values = {name: getattr(args, name) for name in JOB_FIELDS if getattr(args, name) is not None}
    if args.currency:
        values["salary_currency"] = args.currency
    try:
        job = Job(employer_id=employer_id, **values)
    except ValueError as e:
        raise CommandError(str(e)) from e
    result = await services.jobs.insert_job(job)
    print(f"Posted job {result.key}{_status_note(result.status)}")


async def cmd_update_job(services: Services, args):
    user_id = current_user_id(services)
    found = await services.jobs.get_by_id(args.job_id)
    job = found.record
    if job is None or job.employer_id != user_id:
        raise CommandError(f"No job {args.job_id} posted by you")
    values = {name: getattr(args, name) for name in JOB_FIELDS if getattr(args, name) is not None}
    if args.currency:
        values["salary_currency"] = args.currency
    for name, value in values.items():
        setattr(job, name, value)
    try:
        result = await services.jobs.update_job(job)
    except ValueError as e:
        raise CommandError(str(e)) from e
    print(f"Updated job {job.id}{_status_note(result.status)}")


async def cmd_delete_job(services: Services, args):
    user_id = current_user_id(services)
    found = await services.jobs.get_by_id(args.job_id)
    if found.record is None or found.record.employer_id != user_id:
        raise CommandError(f"No job {args.job_id} posted by you")
    result = await services.jobs.delete_job(found.record)
    print(f"Deleted job {args.job_id}{_status_note(result.status)}")


async def cmd_jobs(services: Services, args):
    repo = services.jobs
    if args.mine:
        result = await repo.by_employer(current_user_id(services))
    elif args.search or args.experience or args.city or args.min_salary is not None:
        result = await repo.search_with_filters(args.search, args.experience, args.city, args.min_salary)
    else:
        result = await repo.list_all()
    print(f"{len(result)} job(s){_status_note(result.status)}")
    for job in result:
        print_job(job)


async def cmd_send(services: Services, args):
    user_id = current_user_id(services)
    message = Message(sender_id=user_id, receiver_id=args.user_id, text=args.text)
    try:
        result = await services.messages.send_message(message)
    except ValueError as e:
        raise CommandError(str(e)) from e
    note = " (already sent)" if result.duplicate else _status_note(result.status)
    print(f"Message {result.key}{note}")


async def cmd_chat(services: Services, args):
    user_id = current_user_id(services)
    if not args.follow:
        result = await services.messages.sync_conversation(user_id, args.user_id)
        print(f"Conversation with {args.user_id}{_status_note(result.status)}")
        for message in result:
            print_message(message, user_id)
        return

    shown = set()
    async for snapshot in services.messages.watch_conversation(user_id, args.user_id):
        for message in snapshot:
            if message.id not in shown:
                shown.add(message.id)
                print_message(message, user_id)


async def cmd_conversations(services: Services, args):
    user_id = current_user_id(services)
    items = await list_conversations(services.messages, services.users, user_id)
    if not items:
        print("No conversations yet")
    for item in items:
        last = item.last_message
        prefix = "you: " if last.sender_id == user_id else ""
        print(f"[{item.other_user.id}] {item.other_user.display_name}: {prefix}{last.text}")


async def cmd_users(services: Services, args):
    if args.query:
        result = await services.users.search_users(args.query, limit=services.search_limit)
    else:
        result = await services.users.list_all()
    print(f"{len(result)} user(s){_status_note(result.status)}")
    for user in result:
        print(f"[{user.id}] @{user.username} {user.display_name}")


async def cmd_photo(services: Services, args):
    user_id = current_user_id(services)
    try:
        if args.photo_url is not None:
            result = await services.users.update_profile_photo_url(user_id, args.photo_url)
        else:
            result = await services.users.update_profile_photo(user_id, args.photo_id)
    except ValueError as e:
        raise CommandError(str(e)) from e
    print(f"Profile photo updated{_status_note(result.status)}")


def print_new_message(sender_name: str, message: Message):
    print(f"New message from {sender_name}: {message.text}")


async def cmd_check_messages(services: Services, args):
    user_id = current_user_id(services)
    services.worker.on_message = print_new_message
    fresh = await services.worker.run(user_id)
    if fresh is None:
        print("Remote store unreachable; try again later")
    elif not fresh:
        print("No new messages")


def run_daemon(services: Services, config: AppConfig):
    from job_board.scheduler import get_next_run_time, shutdown_scheduler, start_message_checks, stop_message_checks

    user_id = current_user_id(services)
    services.worker.on_message = print_new_message
    start_message_checks(services.worker, user_id, config.sync.message_check_interval_minutes)
    print(f"Checking for new messages in the background, next check at {get_next_run_time(user_id)}.")
    print("Press Ctrl-C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        stop_message_checks(user_id)
        shutdown_scheduler()


def print_stats(services: Services):
    """Print local store statistics."""
    stats = services.db.get_stats()
    print("\n=== Job Board Statistics ===")
    print(f"Users: {stats['users']}")
    print(f"Jobs: {stats['jobs']}")
    print(f"Messages: {stats['messages']}")

    if stats.get("jobs_by_employer"):
        print("\nJobs by employer:")
        for employer, count in stats["jobs_by_employer"].items():
            print(f"  {employer}: {count}")

    if stats.get("last_message_check"):
        print(f"\nLast message check: {_format_time(int(stats['last_message_check']))}")
    print()


COMMANDS = {
    "register": cmd_register,
    "login": cmd_login,
    "whoami": cmd_whoami,
    "post-job": cmd_post_job,
    "update-job": cmd_update_job,
    "delete-job": cmd_delete_job,
    "jobs": cmd_jobs,
    "send": cmd_send,
    "chat": cmd_chat,
    "conversations": cmd_conversations,
    "users": cmd_users,
    "photo": cmd_photo,
    "check-messages": cmd_check_messages,
}


def run_command(services: Services, config: AppConfig, args):
    if args.command == "guest":
        services.session.save_guest_session()
        print("Continuing as guest")
    elif args.command == "logout":
        services.session.clear()
        print("Signed out")
    elif args.command == "stats":
        print_stats(services)
    elif args.command == "daemon":
        run_daemon(services, config)
    else:
        asyncio.run(COMMANDS[args.command](services, args))


def main(argv=None):
    args = parse_args(argv)

    # Load config
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.log_dir)

    # Validate config and print warnings
    warnings = validate_config(config)
    for w in warnings:
        logger.warning("Config: %s", w)

    services = build_services(config, offline=args.offline)
    try:
        run_command(services, config, args)
    except CommandError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        services.close()


if __name__ == "__main__":
    main()
