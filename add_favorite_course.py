"""
Script to add a course to a user's 'favoriteCourses' list in a Firestore
collection, looking the user up by first and last name.
"""

import argparse
import contextlib
import enum
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter

# --- Configuration ---
SERVICE_ACCOUNT_PATH = 'serviceAccountKey.json'
PROJECT_ID = None
COLLECTION_NAME = 'users'
APP_NAME = 'add-favorite-course'

# --- Target user and course ---
FIRST_NAME = 'Tobias'
LAST_NAME = 'Hanner'
COURSE_ID = 3928713
COURSE_NAME = 'Stockholms Golfklubb'

# --- Fields to update ---
FAVORITES_FIELD = 'favoriteCourses'
UPDATED_AT_FIELD = 'updatedAt'


class UpdateStatus(enum.Enum):
    ADDED = 'added'
    NOT_FOUND = 'not_found'
    ALREADY_PRESENT = 'already_present'
    FAILED = 'failed'


@dataclass
class UpdateResult:
    """Outcome of a single add_favorite_course run."""
    status: UpdateStatus
    doc_id: Optional[str] = None
    favorite_courses: List[int] = field(default_factory=list)
    updated_at: Optional[str] = None
    match_count: int = 0
    dry_run: bool = False
    error: Optional[Exception] = None
    cleanup_error: Optional[Exception] = None

    @property
    def ok(self):
        return self.status is not UpdateStatus.FAILED


def utc_timestamp():
    """Current UTC time as an ISO-8601 string, e.g. 2026-10-19T08:15:00.123Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@contextlib.contextmanager
def firestore_client(service_account_path=SERVICE_ACCOUNT_PATH, project_id=PROJECT_ID,
                     app_name=APP_NAME):
    """
    Yields a Firestore client bound to a dedicated firebase_admin app and
    deletes the app again on exit.

    With a service account path the certificate is loaded from that file;
    without one, Application Default Credentials from the gcloud CLI are used.
    """
    if service_account_path:
        if not os.path.exists(service_account_path):
            raise FileNotFoundError(f"Service account not found: {service_account_path}")
        cred = credentials.Certificate(service_account_path)
    else:
        cred = credentials.ApplicationDefault()

    options = {'projectId': project_id} if project_id else None
    app = firebase_admin.initialize_app(cred, options, name=app_name)
    try:
        yield firestore.client(app)
    finally:
        firebase_admin.delete_app(app)


def _find_users(db, collection_name, first_name, last_name):
    query = (
        db.collection(collection_name)
        .where(filter=FieldFilter('firstName', '==', first_name))
        .where(filter=FieldFilter('lastName', '==', last_name))
    )
    # Several people can share a name; always pick the lowest document id.
    return sorted(query.stream(), key=lambda doc: doc.id)


def add_favorite_course(db, first_name=FIRST_NAME, last_name=LAST_NAME, course_id=COURSE_ID,
                        collection_name=COLLECTION_NAME, dry_run=False,
                        clock=utc_timestamp):
    """
    Appends course_id to the favorite courses of the user named
    first_name last_name, unless it is already there.

    At most one document is written. Errors from Firestore are not raised;
    they come back as an UpdateResult with status FAILED.
    """
    try:
        # 1. Find the user
        docs = _find_users(db, collection_name, first_name, last_name)
        if not docs:
            return UpdateResult(UpdateStatus.NOT_FOUND, dry_run=dry_run)

        user_doc = docs[0]
        user_data = user_doc.to_dict() or {}

        # 2. Check current favorites
        favorites = user_data.get(FAVORITES_FIELD)
        if favorites is None:
            favorites = []
        elif not isinstance(favorites, list):
            raise TypeError(f"{FAVORITES_FIELD} on {user_doc.id} is a "
                            f"{type(favorites).__name__}, not an array")
        favorites = list(favorites)
        if course_id in favorites:
            return UpdateResult(
                UpdateStatus.ALREADY_PRESENT,
                doc_id=user_doc.id,
                favorite_courses=favorites,
                updated_at=user_data.get(UPDATED_AT_FIELD),
                match_count=len(docs),
                dry_run=dry_run,
            )

        # 3. Append and write back
        favorites.append(course_id)
        updated_at = clock()
        if not dry_run:
            user_doc.reference.update({
                FAVORITES_FIELD: favorites,
                UPDATED_AT_FIELD: updated_at,
            })

        return UpdateResult(
            UpdateStatus.ADDED,
            doc_id=user_doc.id,
            favorite_courses=favorites,
            updated_at=updated_at,
            match_count=len(docs),
            dry_run=dry_run,
        )

    except Exception as e:
        return UpdateResult(UpdateStatus.FAILED, dry_run=dry_run, error=e)


def report(result, first_name=FIRST_NAME, last_name=LAST_NAME, course_id=COURSE_ID,
           course_name=COURSE_NAME, collection_name=COLLECTION_NAME):
    """Prints the one status line for a result."""
    person = f"{first_name} {last_name}"
    extra = ""
    if result.match_count > 1:
        extra = f" ({result.match_count} users matched, used the first by document id)"

    if result.status is UpdateStatus.NOT_FOUND:
        line = f"🔍 No user found named {person} in '{collection_name}'"
    elif result.status is UpdateStatus.ALREADY_PRESENT:
        line = f"⚠️ Course {course_id} already in favorites of {person}{extra}"
    elif result.status is UpdateStatus.ADDED:
        verb = "Would add" if result.dry_run else "Added"
        line = (f"✅ {verb} {course_name} ({course_id}) to favorites of {person} "
                f"(document {result.doc_id}){extra}")
        if result.dry_run:
            line = f"[dry run] {line}"
    else:
        line = f"❌ An error occurred: {result.error}"

    if result.cleanup_error is not None:
        line = f"{line} (cleanup failed: {result.cleanup_error})"

    print(line)
    return line


def _parse_args(argv):
    parser = argparse.ArgumentParser(
        description="Add a course to a user's favorite courses in Firestore."
    )
    parser.add_argument('--credentials', default=SERVICE_ACCOUNT_PATH,
                        help="Path to the service account JSON. Pass an empty string "
                             "to use Application Default Credentials.")
    parser.add_argument('--project-id', default=PROJECT_ID, help="Firebase project id.")
    parser.add_argument('--collection', default=COLLECTION_NAME, help="User collection name.")
    parser.add_argument('--first-name', default=FIRST_NAME)
    parser.add_argument('--last-name', default=LAST_NAME)
    parser.add_argument('--course-id', type=int, default=COURSE_ID)
    parser.add_argument('--course-name', default=COURSE_NAME,
                        help="Label used in the console message.")
    parser.add_argument('--dry-run', action='store_true',
                        help="Report what would change without writing.")
    return parser.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)

    result = None
    try:
        with firestore_client(args.credentials or None, args.project_id) as db:
            result = add_favorite_course(
                db,
                first_name=args.first_name,
                last_name=args.last_name,
                course_id=args.course_id,
                collection_name=args.collection,
                dry_run=args.dry_run,
            )
    except Exception as e:
        # The write may already have gone through; keep its outcome.
        if result is None:
            result = UpdateResult(UpdateStatus.FAILED, dry_run=args.dry_run, error=e)
        else:
            result.cleanup_error = e

    report(
        result,
        first_name=args.first_name,
        last_name=args.last_name,
        course_id=args.course_id,
        course_name=args.course_name,
        collection_name=args.collection,
    )
    return 0 if result.ok else 1


if __name__ == '__main__':
    sys.exit(main())
