# Expire Rooms Management Command
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from core.exceptions import InvalidTransition
from core.models import Room

EXPIRY_REASON = 'Room expired'


class Command(BaseCommand):
    help = 'Cancels rooms that are still CREATED or PENDING_PAYMENT after their expiry time.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the rooms that would expire without changing them.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=500,
            help='Number of rooms fetched per database round trip.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be at least 1.')

        now = timezone.now()
        candidates = Room.objects.filter(
            status__in=[Room.Status.CREATED, Room.Status.PENDING_PAYMENT],
            expires_at__lte=now,
        ).order_by('expires_at')

        self.stdout.write('Expiring stale rooms...')
        count = 0

        # Snapshot the ids; expiring a room removes it from the candidate filter
        room_ids = list(candidates.values_list('pk', flat=True))

        for start in range(0, len(room_ids), batch_size):
            batch = room_ids[start:start + batch_size]

            if dry_run:
                rooms = Room.objects.in_bulk(batch)
                for room_id in batch:
                    room = rooms[room_id]
                    self.stdout.write(
                        f'  [DRY-RUN] Room {room.room_code} ({room.status}) expired at {room.expires_at}'
                    )
                    count += 1
                continue

            for room_id in batch:
                if self.expire_room(room_id, now):
                    count += 1

        if dry_run:
            self.stdout.write(self.style.SUCCESS(f'Dry run completed. {count} rooms would expire.'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Expired {count} rooms.'))

    def expire_room(self, room_id, now):
        # Re-check under lock; a participant may have moved the room on
        with transaction.atomic():
            room = Room.objects.select_for_update().get(pk=room_id)
            if room.status not in (Room.Status.CREATED, Room.Status.PENDING_PAYMENT):
                return False
            if room.expires_at > now:
                return False
            try:
                room.cancel(actor=None, reason=EXPIRY_REASON)
            except InvalidTransition:
                return False
        return True
