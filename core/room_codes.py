"""
Room code generation.

Codes are 8 upper-case hex characters drawn from 4 random bytes. The unique
constraint on ``Room.room_code`` is what guarantees uniqueness; the lookup
before insert only avoids needless retries.
"""

import logging
import re
import secrets

from django.db import IntegrityError, transaction

from .exceptions import CodeGenerationExhausted
from .models import Room

logger = logging.getLogger(__name__)

ROOM_CODE_RETRY_LIMIT = 5
ROOM_CODE_PATTERN = re.compile(r'^[0-9A-F]{8}$')


def random_room_code():
    return secrets.token_hex(4).upper()


def room_code_exists(code):
    return Room.objects.filter(room_code=code).exists()


def candidate_codes(exists=room_code_exists, attempts=ROOM_CODE_RETRY_LIMIT):
    """
    Yield unused room codes, drawing at most ``attempts`` candidates in total.

    Codes that are already taken still consume an attempt.
    """
    for _attempt in range(attempts):
        code = random_room_code()
        if exists(code):
            logger.info(f"Room code collision on {code}, retrying")
            continue
        yield code


def generate_room_code(exists=room_code_exists, attempts=ROOM_CODE_RETRY_LIMIT):
    """
    Return a room code not yet in use.

    Args:
        exists: Callable telling whether a code is already taken
        attempts: Maximum number of candidates to try

    Raises:
        CodeGenerationExhausted: If every candidate collided
    """
    for code in candidate_codes(exists, attempts):
        return code

    logger.error(f"Room code generation exhausted after {attempts} attempts")
    raise CodeGenerationExhausted()


def create_room_with_unique_code(exists=room_code_exists, **fields):
    """
    Create a room with a freshly generated code.

    Lookup collisions and inserts that lose a race on the code's unique
    constraint draw from one budget of ``ROOM_CODE_RETRY_LIMIT`` candidates.
    Integrity errors caused by anything other than the code are re-raised.

    Raises:
        CodeGenerationExhausted: If no unique code could be inserted
    """
    for code in candidate_codes(exists):
        try:
            with transaction.atomic():
                return Room.objects.create(room_code=code, **fields)
        except IntegrityError:
            if not room_code_exists(code):
                raise
            logger.warning(f"Room code {code} taken at insert time, retrying")

    logger.error(f"Room creation exhausted {ROOM_CODE_RETRY_LIMIT} code attempts")
    raise CodeGenerationExhausted()
