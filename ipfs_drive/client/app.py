# Terminal client: encrypts locally, stores ciphertext on IPFS, metadata in the document store
import logging
import os

from colorama import Fore, Style, just_fix_windows_console

from .config import Config
from .errors import AuthenticationFailure, DriveError, UnpinFailure
from .records import FILE_TYPES, convert_file_size, get_file_types_params
from .service import FileService

DOWNLOAD_DIR = os.path.join(".", "download")


def error(message):
    print(Fore.RED + message + Style.RESET_ALL)


def success(message):
    print(Fore.GREEN + message + Style.RESET_ALL)


def warn(message):
    print(Fore.YELLOW + message + Style.RESET_ALL)


def format_record(record, owner):
    shared = "" if record.owner == owner else f"  (shared by {record.owner})"
    return (
        f"* [{record.id}] {record.name}  {convert_file_size(record.size)}"
        f"  {record.type}  {record.created_at or ''}{shared}"
    )


def is_owner(service, file_id, owner, action):
    if service.documents.get(file_id).owner != owner:
        error(f"Only the owner can {action} a file")
        return False
    return True


def download_name(record):
    name = os.path.basename(record.name)
    if name in ("", ".", ".."):
        return record.id
    return name


def upload_file(service, owner):
    file_path = input("Enter the path to the file to upload: ")
    if not os.path.isfile(file_path):
        error("File not found!")
        return

    filename = os.path.basename(file_path)
    with open(file_path, "rb") as f:
        file_contents = f.read()

    try:
        record = service.upload_file(file_contents, filename, owner, account_id=owner)
    except DriveError as e:
        error(f"Failed to upload {filename}: {e}")
        return
    success(f"{filename} uploaded successfully. Access it at {record.url}")


def list_files(service, owner):
    section = input("Type [documents/images/media/others, blank for all]: ").strip()
    search = input("Search (blank for none): ").strip()
    sort = input("Sort [$createdAt-desc, name-asc, size-desc, ...]: ").strip() or "$createdAt-desc"
    types = get_file_types_params(section) if section else []

    try:
        files = service.get_files(owner, types=types, search=search, sort=sort)
    except ValueError as e:
        error(str(e))
        return
    except DriveError as e:
        error(f"Error listing files: {e}")
        return

    if not files:
        warn("No files uploaded")
        return
    print("Files:")
    print("********************")
    for record in files:
        print(format_record(record, owner))
    print("********************")


def open_file(service, owner):
    file_id = input("Enter the id of the file to download: ").strip()
    try:
        if not service.documents.get(file_id).is_visible_to(owner):
            error("You do not have access to this file")
            return
        opened = service.open_file(file_id)
    except AuthenticationFailure:
        error("Failed to decrypt file: the file or its key has been tampered with")
        return
    except DriveError as e:
        error(f"Error downloading file: {e}")
        return

    filepath = os.path.join(DOWNLOAD_DIR, download_name(opened.record))
    try:
        os.makedirs(DOWNLOAD_DIR, exist_ok=True)
        with open(filepath, "wb") as f:
            f.write(opened.data)
    except OSError as e:
        error(f"Could not write {filepath}: {e}")
        return
    success(f"File downloaded and decrypted as {filepath}")


def rename_file(service, owner):
    file_id = input("Enter the id of the file to rename: ").strip()
    new_name = input("Enter the new name: ")
    try:
        if not is_owner(service, file_id, owner, "rename"):
            return
        record = service.rename_file(file_id, new_name)
    except (ValueError, DriveError) as e:
        error(f"Error renaming file: {e}")
        return
    success(f"Renamed to {record.name}")


def share_file(service, owner):
    file_id = input("Enter the id of the file to share: ").strip()
    users = input("Enter user ids to share with (comma separated, blank to unshare): ")
    try:
        if not is_owner(service, file_id, owner, "share"):
            return
        record = service.update_file_users(file_id, users.split(","))
    except DriveError as e:
        error(f"Error sharing file: {e}")
        return
    success(f"Shared with: {', '.join(record.users) or 'nobody'}")


def delete_file(service, owner):
    file_id = input("Enter the id of the file to delete: ").strip()
    try:
        record = service.documents.get(file_id)
        if record.owner != owner:
            error("Only the owner can delete a file")
            return
        service.delete_file(record.id, record.bucket_file_id)
    except UnpinFailure as e:
        warn(f"File removed from your drive, but the stored blob could not be unpinned: {e}")
        return
    except DriveError as e:
        error(f"Error deleting file: {e}")
        return
    success("File deleted successfully")


def show_usage(service, owner):
    try:
        usage = service.get_total_space_used(owner)
    except DriveError as e:
        error(f"Error reading usage: {e}")
        return
    print(f"Total: {convert_file_size(usage.used)} of {convert_file_size(usage.all)}")
    for file_type in FILE_TYPES:
        summary = usage.by_type[file_type]
        print(f"  {file_type:<9} {summary.count:>4} files  {convert_file_size(summary.size)}")


ACTIONS = {
    "a": ("Upload File", upload_file),
    "b": ("List Files", list_files),
    "c": ("Download File", open_file),
    "d": ("Rename File", rename_file),
    "e": ("Share File", share_file),
    "f": ("Delete File", delete_file),
    "g": ("Storage Usage", show_usage),
}


def main(config=None):
    just_fix_windows_console()
    config = config or Config.from_env()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
    service = FileService(config)

    owner = input("Enter your user id: ").strip()
    if not owner:
        error("A user id is required.")
        return

    while True:
        print("\n------------------")
        print("Drive:")
        for key, (label, _) in ACTIONS.items():
            print(f"[{key}] {label}")
        print("[x] Exit")
        choice = input("Enter your choice: ").strip()
        print("------------------\n")
        if choice == "x":
            break
        if choice not in ACTIONS:
            print("Invalid choice.")
            continue
        ACTIONS[choice][1](service, owner)


if __name__ == "__main__":
    main()
