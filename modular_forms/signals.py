# -*- coding: utf-8 -*-
from django.dispatch import Signal

# Emitted after a LookupFieldRelation has been created or updated. Receivers
# get `relation` and `created`.
lookup_relation_saved = Signal()

# Emitted after a submission has been validated, enriched and persisted.
# Receivers get `record`.
record_submitted = Signal()
