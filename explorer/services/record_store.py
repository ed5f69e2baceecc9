"""
Persistence of extracted products.

Async facade over the ``Alcohol`` model for the exploration loop.
"""

import logging
from typing import Iterable, List

from asgiref.sync import sync_to_async
from django.db import DatabaseError, IntegrityError, transaction

from explorer.entities import ProductDraft
from explorer.exceptions import RecordConflictError, RecordStoreError
from explorer.models import Alcohol

logger = logging.getLogger(__name__)


class DjangoRecordStore:
    """
    Record store backed by the Django ORM.

    - exists(ids): one query for the whole batch
    - create(draft): RecordConflictError when the product is already stored,
      RecordStoreError for any other failure
    """

    async def exists(self, ids: Iterable[str]) -> List[str]:
        return await sync_to_async(self._exists, thread_sensitive=True)(list(ids))

    async def create(self, draft: ProductDraft) -> Alcohol:
        return await sync_to_async(self._create, thread_sensitive=True)(draft)

    def _exists(self, ids: List[str]) -> List[str]:
        ids = [i for i in ids if i]
        if not ids:
            return []
        return list(
            Alcohol.objects.filter(external_id__in=ids).values_list("external_id", flat=True)
        )

    def _create(self, draft: ProductDraft) -> Alcohol:
        if not draft.external_id:
            raise RecordStoreError("Product without external id")
        if not draft.name:
            raise RecordStoreError(f"Product {draft.external_id} without name")

        try:
            with transaction.atomic():
                alcohol = Alcohol.objects.create(**Alcohol.fields_from_draft(draft))
        except IntegrityError as e:
            if Alcohol.objects.filter(external_id=draft.external_id).exists():
                raise RecordConflictError(f"Alcohol {draft.external_id} already exists") from e
            raise RecordStoreError(f"Cannot create alcohol {draft.external_id}: {e}") from e
        except DatabaseError as e:
            raise RecordStoreError(f"Cannot create alcohol {draft.external_id}: {e}") from e

        logger.info(f"Alcohol {alcohol.external_id} saved")
        return alcohol
