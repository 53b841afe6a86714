#!/usr/bin/env python3
"""
Unit tests for the memorymap/services layer.

Run with:
    python -m pytest tests/test_services.py
"""
import datetime
import json
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from memorymap.errors import (
    CategoryNotFoundError, LocationError, PinNotFoundError, ValidationError,
)
from memorymap.geofence import KYOTO
from memorymap.persistence import PersistenceAdapter
from memorymap.services import MemoryStore, QueryService, SelectionState
from memorymap.storage import MemoryStorage

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime.datetime(2024, 4, 1, 9, 30, tzinfo=datetime.timezone.utc)

KIYOMIZU = (34.9949, 135.7850)
FUSHIMI_INARI = (34.9671, 135.7727)
GINKAKUJI = (35.0270, 135.7982)
OSAKA = (34.6937, 135.5023)
UJI = (34.8843, 135.7998)   # visible on the map, outside registration


def make_store(storage=None, default_categories=()):
    storage = storage if storage is not None else MemoryStorage()
    adapter = PersistenceAdapter(storage, list(default_categories), background=False)
    store = MemoryStore(KYOTO, adapter, clock=lambda: NOW)
    return store, storage


class StoreTestCase(unittest.TestCase):

    def setUp(self):
        self.store, self.storage = make_store()
        self.selection = SelectionState()
        self.query = QueryService(self.store, self.selection)

    def add_text_pin(self, char='寺', where=KIYOMIZU, **fields):
        return self.store.add_pin(where[0], where[1], pin_type='text', text_char=char, **fields)

    def add_photo_pin(self, uri='file:///photos/1.jpg', where=GINKAKUJI, **fields):
        return self.store.add_pin(where[0], where[1], pin_type='photo', photo_uri=uri, **fields)

    def stored(self, key):
        return json.loads(self.storage.get(key))


# ===========================================================================
# MemoryStore: pins
# ===========================================================================

class TestAddPin(StoreTestCase):

    def test_returns_new_id_and_stores_record(self):
        pin_id = self.add_text_pin()
        pin = self.query.get_pin(pin_id)
        self.assertEqual(pin['text_char'], '寺')
        self.assertEqual(pin['pin_type'], 'text')
        self.assertEqual((pin['lat'], pin['lng']), KIYOMIZU)

    def test_defaults(self):
        pin = self.query.get_pin(self.add_text_pin())
        self.assertEqual(pin['rank'], 2)
        self.assertEqual(pin['created_at'], NOW.isoformat())
        self.assertEqual(pin['visited_at'], NOW.isoformat())
        self.assertIsNone(pin['note'])
        self.assertIsNone(pin['photo_uri'])
        self.assertIsNone(pin['background_uri'])

    def test_ids_are_unique(self):
        ids = {self.add_text_pin() for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_visited_at_accepts_date_and_iso_string(self):
        a = self.add_text_pin(visited_at=datetime.date(2019, 11, 23))
        b = self.add_text_pin(visited_at='2020-05-01T10:00:00.000Z')
        self.assertEqual(self.query.get_pin(a)['visited_at'], '2019-11-23')
        self.assertEqual(self.query.get_pin(b)['visited_at'], '2020-05-01T10:00:00.000Z')

    def test_bad_visited_at_rejected(self):
        with self.assertRaises(ValidationError):
            self.add_text_pin(visited_at='last spring')

    def test_outside_boundary_rejected_and_nothing_stored(self):
        for where in (OSAKA, UJI):
            with self.subTest(where=where):
                with self.assertRaises(LocationError) as ctx:
                    self.add_text_pin(where=where)
                self.assertEqual(ctx.exception.lat, where[0])
        self.assertEqual(self.query.list_pins(), [])
        self.assertEqual(self.stored('pins'), [])

    def test_location_error_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            self.add_text_pin(where=OSAKA)

    def test_photo_pin_requires_photo_uri(self):
        with self.assertRaises(ValidationError) as ctx:
            self.store.add_pin(*KIYOMIZU, pin_type='photo')
        self.assertEqual(ctx.exception.field, 'photo_uri')

    def test_text_pin_requires_text_char(self):
        with self.assertRaises(ValidationError):
            self.store.add_pin(*KIYOMIZU, pin_type='text', text_char='')

    def test_unknown_pin_type_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.add_pin(*KIYOMIZU, pin_type='video', photo_uri='x')

    def test_rank_must_be_1_to_3(self):
        for rank in (0, 4, '2', True, 2.5):
            with self.subTest(rank=rank):
                with self.assertRaises(ValidationError):
                    self.add_text_pin(rank=rank)
        self.assertEqual(self.query.get_pin(self.add_text_pin(rank=3))['rank'], 3)

    def test_text_char_allows_surrogate_pair_emoji(self):
        pin_id = self.add_text_pin(char='🍵')
        self.assertEqual(self.query.get_pin(pin_id)['text_char'], '🍵')

    def test_text_char_longer_than_one_glyph_rejected(self):
        with self.assertRaises(ValidationError):
            self.add_text_pin(char='京都市')

    def test_lone_surrogate_text_char_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.add_text_pin(char='\ud800')
        self.assertEqual(ctx.exception.field, 'text_char')

    def test_lone_surrogate_note_rejected_and_later_saves_work(self):
        with self.assertRaises(ValidationError) as ctx:
            self.add_text_pin(note='bad \udc80')
        self.assertEqual(ctx.exception.field, 'note')
        self.assertEqual(self.query.list_pins(), [])

        cat = self.store.add_category('shrine')
        self.assertIsNone(self.store._persistence.last_error)
        self.assertEqual([c['id'] for c in self.stored('categories')], [cat])

    def test_coordinates_must_be_numbers(self):
        with self.assertRaises(ValidationError):
            self.store.add_pin('35.0', 135.77, pin_type='text', text_char='寺')

    def test_photo_pin_may_carry_text_char(self):
        pin_id = self.add_photo_pin(text_char='花')
        self.assertEqual(self.query.get_pin(pin_id)['text_char'], '花')

    def test_add_persists(self):
        pin_id = self.add_text_pin()
        self.assertEqual([p['id'] for p in self.stored('pins')], [pin_id])


class TestUpdatePin(StoreTestCase):

    def test_merges_fields(self):
        pin_id = self.add_text_pin(note='first visit')
        self.store.update_pin(pin_id, rank=3)
        pin = self.query.get_pin(pin_id)
        self.assertEqual(pin['rank'], 3)
        self.assertEqual(pin['note'], 'first visit')

    def test_none_clears_optional_field(self):
        pin_id = self.add_text_pin(note='x', background_uri='file:///bg.jpg')
        self.store.update_pin(pin_id, note=None, background_uri=None)
        pin = self.query.get_pin(pin_id)
        self.assertIsNone(pin['note'])
        self.assertIsNone(pin['background_uri'])

    def test_unknown_pin_raises_not_found(self):
        with self.assertRaises(PinNotFoundError):
            self.store.update_pin('missing', rank=1)

    def test_immutable_and_unknown_fields_rejected(self):
        pin_id = self.add_text_pin()
        for field in ('id', 'created_at', 'colour'):
            with self.subTest(field=field):
                with self.assertRaises(ValidationError):
                    self.store.update_pin(pin_id, **{field: 'x'})

    def test_relocation_revalidates_geofence(self):
        pin_id = self.add_text_pin()
        with self.assertRaises(LocationError):
            self.store.update_pin(pin_id, lat=OSAKA[0], lng=OSAKA[1])
        self.assertEqual((self.query.get_pin(pin_id)['lat'],
                          self.query.get_pin(pin_id)['lng']), KIYOMIZU)

    def test_partial_relocation_uses_existing_other_coordinate(self):
        pin_id = self.add_text_pin()
        with self.assertRaises(LocationError):
            self.store.update_pin(pin_id, lng=OSAKA[1])
        self.store.update_pin(pin_id, lat=FUSHIMI_INARI[0])
        self.assertEqual(self.query.get_pin(pin_id)['lat'], FUSHIMI_INARI[0])

    def test_failed_update_does_not_mutate(self):
        pin_id = self.add_text_pin()
        with self.assertRaises(ValidationError):
            self.store.update_pin(pin_id, note='changed', rank=9)
        self.assertIsNone(self.query.get_pin(pin_id)['note'])

    def test_switch_text_to_photo_keeps_text_char(self):
        pin_id = self.add_text_pin(char='寺')
        self.store.update_pin(pin_id, pin_type='photo', photo_uri='file:///p.jpg')
        pin = self.query.get_pin(pin_id)
        self.assertEqual(pin['pin_type'], 'photo')
        self.assertEqual(pin['text_char'], '寺')

    def test_switch_photo_to_text_keeps_photo_uri(self):
        pin_id = self.add_photo_pin(uri='file:///p.jpg')
        self.store.update_pin(pin_id, pin_type='text', text_char='庭')
        self.assertEqual(self.query.get_pin(pin_id)['photo_uri'], 'file:///p.jpg')

    def test_switch_type_without_display_field_rejected(self):
        pin_id = self.add_text_pin()
        with self.assertRaises(ValidationError):
            self.store.update_pin(pin_id, pin_type='photo')

    def test_clearing_display_field_rejected(self):
        pin_id = self.add_photo_pin()
        with self.assertRaises(ValidationError):
            self.store.update_pin(pin_id, photo_uri=None)

    def test_created_at_unchanged(self):
        pin_id = self.add_text_pin()
        self.store.update_pin(pin_id, note='later')
        self.assertEqual(self.query.get_pin(pin_id)['created_at'], NOW.isoformat())

    def test_update_persists(self):
        pin_id = self.add_text_pin()
        self.store.update_pin(pin_id, note='saved')
        self.assertEqual(self.stored('pins')[0]['note'], 'saved')


class TestDeletePin(StoreTestCase):

    def test_cascades_links_and_context(self):
        cat = self.store.add_category('shrine')
        pin_id = self.add_text_pin()
        self.store.set_pin_categories(pin_id, [cat])
        self.store.set_context_meta(pin_id, slot1='rain')

        self.assertTrue(self.store.delete_pin(pin_id))

        self.assertIsNone(self.query.get_pin_with_details(pin_id))
        self.assertEqual(self.store.pin_categories.data, [])
        self.assertIsNone(self.query.get_context_meta(pin_id))
        self.assertEqual(self.stored('pin_categories'), [])
        self.assertEqual(self.stored('context_meta'), [])

    def test_missing_pin_is_noop(self):
        self.assertFalse(self.store.delete_pin('missing'))
        self.assertEqual(self.stored('pins'), [])

    def test_other_pins_keep_their_links(self):
        cat = self.store.add_category('shrine')
        a, b = self.add_text_pin(), self.add_text_pin('社')
        self.store.set_pin_categories(a, [cat])
        self.store.set_pin_categories(b, [cat])
        self.store.delete_pin(a)
        self.assertEqual([c['id'] for c in self.query.get_categories_for_pin(b)], [cat])


# ===========================================================================
# MemoryStore: categories and context metadata
# ===========================================================================

class TestCategories(StoreTestCase):

    def test_add_strips_name(self):
        cat = self.store.add_category('  tea house ')
        self.assertEqual(self.query.list_categories(), [{'id': cat, 'name': 'tea house'}])

    def test_duplicate_names_are_kept(self):
        a = self.store.add_category('shrine')
        b = self.store.add_category('shrine')
        self.assertNotEqual(a, b)
        self.assertEqual([c['name'] for c in self.query.list_categories()], ['shrine', 'shrine'])

    def test_empty_name_rejected(self):
        for name in ('', '   ', None):
            with self.subTest(name=name):
                with self.assertRaises(ValidationError):
                    self.store.add_category(name)

    def test_rename(self):
        cat = self.store.add_category('shrine')
        self.store.rename_category(cat, 'jinja')
        self.assertEqual(self.query.list_categories()[0]['name'], 'jinja')

    def test_rename_missing_raises(self):
        with self.assertRaises(CategoryNotFoundError):
            self.store.rename_category('missing', 'x')

    def test_rename_rejects_empty_and_unencodable_names(self):
        cat = self.store.add_category('shrine')
        for name in ('  ', 'bad \ud800'):
            with self.subTest(name=name):
                with self.assertRaises(ValidationError):
                    self.store.rename_category(cat, name)
        self.assertEqual(self.stored('categories')[0]['name'], 'shrine')

    def test_delete_cascades_links(self):
        keep = self.store.add_category('keep')
        drop = self.store.add_category('drop')
        pin_id = self.add_text_pin()
        self.store.set_pin_categories(pin_id, [keep, drop])
        self.assertTrue(self.store.delete_category(drop))
        self.assertEqual([c['id'] for c in self.query.get_categories_for_pin(pin_id)], [keep])
        self.assertFalse(self.store.delete_category(drop))


class TestSetPinCategories(StoreTestCase):

    def setUp(self):
        super().setUp()
        self.a = self.store.add_category('a')
        self.b = self.store.add_category('b')
        self.c = self.store.add_category('c')
        self.pin = self.add_text_pin()

    def test_full_replace(self):
        self.store.set_pin_categories(self.pin, [self.a, self.b])
        self.store.set_pin_categories(self.pin, [self.c])
        self.assertEqual([c['id'] for c in self.query.get_categories_for_pin(self.pin)], [self.c])

    def test_idempotent_in_content(self):
        self.store.set_pin_categories(self.pin, [self.a, self.b])
        first = {c['id'] for c in self.query.get_categories_for_pin(self.pin)}
        self.store.set_pin_categories(self.pin, [self.b, self.a])
        second = {c['id'] for c in self.query.get_categories_for_pin(self.pin)}
        self.assertEqual(first, second)
        self.assertEqual(len(self.store.pin_categories), 2)

    def test_empty_list_clears(self):
        self.store.set_pin_categories(self.pin, [self.a])
        self.store.set_pin_categories(self.pin, [])
        self.assertEqual(self.query.get_categories_for_pin(self.pin), [])

    def test_unknown_categories_dropped_silently(self):
        self.store.set_pin_categories(self.pin, [self.a, 'stale-id'])
        self.assertEqual([c['id'] for c in self.query.get_categories_for_pin(self.pin)], [self.a])
        self.assertEqual(self.stored('pin_categories'),
                         [{'pin_id': self.pin, 'category_id': self.a}])

    def test_unknown_pin_raises(self):
        with self.assertRaises(PinNotFoundError):
            self.store.set_pin_categories('missing', [self.a])
        self.assertEqual(len(self.store.pin_categories), 0)

    def test_accepts_any_iterable(self):
        self.store.set_pin_categories(self.pin, (cid for cid in [self.a, self.c]))
        self.assertEqual(len(self.query.get_categories_for_pin(self.pin)), 2)


class TestSetContextMeta(StoreTestCase):

    def test_create_and_read(self):
        pin_id = self.add_text_pin()
        self.store.set_context_meta(pin_id, slot1='rain', slot4='with family')
        self.assertEqual(self.query.get_context_meta(pin_id), {
            'pin_id': pin_id, 'slot1': 'rain', 'slot2': None,
            'slot3': None, 'slot4': 'with family',
        })

    def test_replace_clears_omitted_slots(self):
        pin_id = self.add_text_pin()
        self.store.set_context_meta(pin_id, slot1='rain', slot2='spring')
        self.store.set_context_meta(pin_id, slot2='autumn')
        meta = self.query.get_context_meta(pin_id)
        self.assertIsNone(meta['slot1'])
        self.assertEqual(meta['slot2'], 'autumn')
        self.assertEqual(len(self.store.context_meta), 1)

    def test_blank_slots_become_none(self):
        pin_id = self.add_text_pin()
        self.store.set_context_meta(pin_id, slot1='  ', slot2=' noon ')
        meta = self.query.get_context_meta(pin_id)
        self.assertIsNone(meta['slot1'])
        self.assertEqual(meta['slot2'], 'noon')

    def test_slots_are_positional(self):
        pin_id = self.add_text_pin()
        self.store.set_context_meta(pin_id, slot3='x')
        meta = self.query.get_context_meta(pin_id)
        self.assertEqual([meta[f'slot{i}'] for i in range(1, 5)], [None, None, 'x', None])

    def test_unknown_pin_raises(self):
        with self.assertRaises(PinNotFoundError):
            self.store.set_context_meta('missing', slot1='x')

    def test_non_string_slot_rejected(self):
        pin_id = self.add_text_pin()
        with self.assertRaises(ValidationError):
            self.store.set_context_meta(pin_id, slot1=3)

    def test_no_context_meta_returns_none(self):
        self.assertIsNone(self.query.get_context_meta(self.add_text_pin()))


# ===========================================================================
# QueryService
# ===========================================================================

class TestQueryService(StoreTestCase):

    def test_get_pin_with_details(self):
        cat = self.store.add_category('shrine')
        pin_id = self.add_text_pin()
        self.store.set_pin_categories(pin_id, [cat])
        self.store.set_context_meta(pin_id, slot1='rain')
        details = self.query.get_pin_with_details(pin_id)
        self.assertEqual(details['id'], pin_id)
        self.assertEqual(details['categories'], [{'id': cat, 'name': 'shrine'}])
        self.assertEqual(details['context_meta']['slot1'], 'rain')

    def test_details_without_links(self):
        details = self.query.get_pin_with_details(self.add_text_pin())
        self.assertEqual(details['categories'], [])
        self.assertIsNone(details['context_meta'])

    def test_details_unknown_pin(self):
        self.assertIsNone(self.query.get_pin_with_details('missing'))

    def test_returned_records_are_copies(self):
        pin_id = self.add_text_pin()
        self.query.get_pin(pin_id)['note'] = 'tampered'
        self.query.get_pin_with_details(pin_id)['rank'] = 1
        pin = self.query.get_pin(pin_id)
        self.assertIsNone(pin['note'])
        self.assertEqual(pin['rank'], 2)

    def test_list_visible_pins_without_filter(self):
        a, b = self.add_text_pin(), self.add_photo_pin()
        self.assertEqual([p['id'] for p in self.query.list_visible_pins()], [a, b])

    def test_list_visible_pins_with_filter(self):
        cat = self.store.add_category('garden')
        a, b, c = self.add_text_pin(), self.add_photo_pin(), self.add_text_pin('庭')
        self.store.set_pin_categories(a, [cat])
        self.store.set_pin_categories(c, [cat])
        self.assertEqual([p['id'] for p in self.query.list_visible_pins(cat)], [a, c])
        self.assertEqual(self.query.count_visible_pins(cat), 2)
        self.assertEqual(self.query.count_visible_pins(), 3)
        self.assertNotIn(b, [p['id'] for p in self.query.list_visible_pins(cat)])

    def test_visible_pins_follows_selection(self):
        cat = self.store.add_category('garden')
        a = self.add_text_pin()
        self.add_photo_pin()
        self.store.set_pin_categories(a, [cat])
        self.assertEqual(len(self.query.visible_pins()), 2)
        self.selection.select(cat)
        self.assertEqual([p['id'] for p in self.query.visible_pins()], [a])
        self.selection.select(cat)
        self.assertEqual(len(self.query.visible_pins()), 2)

    def test_categories_with_counts_sorted_desc_stable(self):
        a = self.store.add_category('a')
        b = self.store.add_category('b')
        c = self.store.add_category('c')
        p1, p2 = self.add_text_pin(), self.add_text_pin('社')
        self.store.set_pin_categories(p1, [c, a])
        self.store.set_pin_categories(p2, [c])
        rows = self.query.categories_with_counts()
        self.assertEqual([(r['id'], r['pin_count']) for r in rows], [(c, 2), (a, 1), (b, 0)])

    def test_counts_ties_keep_creation_order(self):
        ids = [self.store.add_category(n) for n in 'wxyz']
        self.assertEqual([r['id'] for r in self.query.categories_with_counts()], ids)

    def test_counts_follow_cascading_delete(self):
        cat = self.store.add_category('shrine')
        pins = [self.add_text_pin() for _ in range(3)]
        for pin_id in pins:
            self.store.set_pin_categories(pin_id, [cat])
        self.store.delete_pin(pins[0])
        self.assertEqual(self.query.categories_with_counts()[0]['pin_count'], 2)
        self.assertEqual(self.query.categories_with_counts()[0]['pin_count'],
                         len(self.store.pin_categories.pin_ids_for(cat)))


# ===========================================================================
# SelectionState
# ===========================================================================

class TestSelectionState(unittest.TestCase):

    def test_starts_unfiltered_in_photo_mode(self):
        state = SelectionState()
        self.assertIsNone(state.selected_category_id)
        self.assertEqual(state.display_mode, 'photo')

    def test_select_twice_clears(self):
        state = SelectionState()
        self.assertEqual(state.select('c1'), 'c1')
        self.assertIsNone(state.select('c1'))

    def test_select_other_switches(self):
        state = SelectionState()
        state.select('c1')
        self.assertEqual(state.select('c2'), 'c2')

    def test_clear(self):
        state = SelectionState()
        state.select('c1')
        state.clear()
        self.assertIsNone(state.selected_category_id)

    def test_forget_only_clears_matching(self):
        state = SelectionState()
        state.select('c1')
        state.forget('c2')
        self.assertEqual(state.selected_category_id, 'c1')
        state.forget('c1')
        self.assertIsNone(state.selected_category_id)

    def test_toggle_display_mode(self):
        state = SelectionState()
        self.assertEqual(state.toggle_display_mode(), 'text')
        self.assertEqual(state.toggle_display_mode(), 'photo')
        state.set_display_mode('original')
        self.assertEqual(state.toggle_display_mode(), 'photo')

    def test_unknown_display_mode_rejected(self):
        with self.assertRaises(ValidationError):
            SelectionState().set_display_mode('satellite')
        with self.assertRaises(ValidationError):
            SelectionState('satellite')

    def test_shows_photo(self):
        photo_pin, text_pin = {'pin_type': 'photo'}, {'pin_type': 'text'}
        state = SelectionState('photo')
        self.assertTrue(state.shows_photo(text_pin))
        state.set_display_mode('text')
        self.assertFalse(state.shows_photo(photo_pin))
        state.set_display_mode('original')
        self.assertTrue(state.shows_photo(photo_pin))
        self.assertFalse(state.shows_photo(text_pin))


# ===========================================================================
# Scenarios and restart
# ===========================================================================

class TestScenarios(StoreTestCase):

    def test_shrine_scenario(self):
        c1 = self.store.add_category('shrine')
        p1 = self.store.add_pin(35.0116, 135.7681, pin_type='text', text_char='寺')
        self.store.set_pin_categories(p1, [c1])

        self.assertEqual(self.query.categories_with_counts(),
                         [{'id': c1, 'name': 'shrine', 'pin_count': 1}])
        self.assertEqual([p['id'] for p in self.query.list_visible_pins(c1)], [p1])

        self.store.delete_pin(p1)
        self.assertEqual(self.query.categories_with_counts(),
                         [{'id': c1, 'name': 'shrine', 'pin_count': 0}])

    def test_out_of_boundary_scenario(self):
        self.add_text_pin()
        before = len(self.query.list_pins())
        with self.assertRaises(LocationError):
            self.store.add_pin(*OSAKA, pin_type='text', text_char='城')
        self.assertEqual(len(self.query.list_pins()), before)


class TestRestart(unittest.TestCase):

    def test_round_trip_preserves_every_field(self):
        store, storage = make_store(default_categories=['Temple'])
        cat = store.add_category('shrine')
        p1 = store.add_pin(*KIYOMIZU, pin_type='text', text_char='🍵', rank=1,
                           note='matcha', visited_at='2023-10-01T00:00:00+09:00')
        p2 = store.add_pin(*GINKAKUJI, pin_type='photo', photo_uri='file:///a.jpg',
                           background_uri='file:///b.jpg', text_char='銀')
        store.set_pin_categories(p1, [cat])
        store.set_pin_categories(p2, [cat, store.categories.ids()[0]])
        store.set_context_meta(p1, slot2='autumn', slot4='alone')
        before = store.snapshot()

        reloaded, _ = make_store(storage, default_categories=['Should not seed'])
        self.assertEqual(reloaded.snapshot(), before)
        for key in before:
            self.assertEqual(storage.get(key),
                             json.dumps(before[key], ensure_ascii=False))

    def test_first_launch_seeds_defaults(self):
        store, _ = make_store(default_categories=['Temple', 'Cafe'])
        self.assertEqual([c['name'] for c in store.categories.all()], ['Temple', 'Cafe'])

    def test_seeded_category_ids_survive_restart(self):
        store, storage = make_store(default_categories=['Temple', 'Cafe'])
        seeded = store.categories.ids()
        self.assertEqual([c['id'] for c in json.loads(storage.get('categories'))], seeded)

        reloaded, _ = make_store(storage, default_categories=['Temple', 'Cafe'])
        self.assertEqual(reloaded.categories.ids(), seeded)

    def test_corrupt_data_reseeded_once_and_written_back(self):
        storage = MemoryStorage()
        storage.set('pins', '{not json')
        store, _ = make_store(storage, default_categories=['Temple'])
        self.assertEqual(json.loads(storage.get('pins')), [])
        reloaded, _ = make_store(storage, default_categories=['Temple'])
        self.assertEqual(reloaded.categories.ids(), store.categories.ids())

    def test_orphans_dropped_on_load(self):
        storage = MemoryStorage()
        storage.set('pins', json.dumps([{
            'id': 'p1', 'lat': 35.0, 'lng': 135.77, 'pin_type': 'text',
            'text_char': '寺', 'created_at': NOW.isoformat(),
        }]))
        storage.set('categories', json.dumps([{'id': 'c1', 'name': 'shrine'}]))
        storage.set('pin_categories', json.dumps([
            {'pin_id': 'p1', 'category_id': 'c1'},
            {'pin_id': 'gone', 'category_id': 'c1'},
            {'pin_id': 'p1', 'category_id': 'gone'},
        ]))
        storage.set('context_meta', json.dumps([{'pin_id': 'gone', 'slot1': 'x'}]))
        store, _ = make_store(storage)
        self.assertEqual(store.pin_categories.data, [{'pin_id': 'p1', 'category_id': 'c1'}])
        self.assertEqual(len(store.context_meta), 0)


if __name__ == '__main__':
    unittest.main()
