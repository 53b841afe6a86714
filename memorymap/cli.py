#!/usr/bin/env python3
"""
Read-only inspection of a persisted memory store.

Examples:
  memorymap-inspect pins                     # List every pin
  memorymap-inspect pins --category <id>     # Pins tagged with one category
  memorymap-inspect categories               # Categories with pin counts
  memorymap-inspect pin <id>                 # One pin with its details
  memorymap-inspect check 35.01 135.77       # Is the point registrable?
"""

import argparse
import logging
import sys
from typing import List, Optional

from colorama import Fore, Style, init

from .app import MemoryMap
from .errors import MemoryMapError

logger = logging.getLogger('memorymap.cli')


def _pin_line(pin: dict) -> str:
    glyph = pin.get('text_char') or ('[photo]' if pin.get('photo_uri') else '?')
    stars = '*' * int(pin.get('rank') or 0)
    visited = (pin.get('visited_at') or '')[:10]
    return (f"{Fore.CYAN}{pin['id']}{Style.RESET_ALL}  {glyph}  "
            f"({pin['lat']:.5f}, {pin['lng']:.5f})  {stars:<3}  {visited}")


def cmd_pins(mm: MemoryMap, args) -> int:
    pins = mm.query.list_visible_pins(args.category)
    for pin in pins:
        print(_pin_line(pin))
    print(f"{Fore.GREEN}{len(pins)} pin(s)")
    return 0


def cmd_categories(mm: MemoryMap, args) -> int:
    for row in mm.query.categories_with_counts():
        print(f"{Fore.CYAN}{row['id']}{Style.RESET_ALL}  {row['pin_count']:>4}  {row['name']}")
    return 0


def cmd_pin(mm: MemoryMap, args) -> int:
    pin = mm.query.get_pin_with_details(args.pin_id)
    if pin is None:
        print(f"{Fore.RED}Pin not found: {args.pin_id}")
        return 1
    print(_pin_line(pin))
    for key in ('pin_type', 'photo_uri', 'background_uri', 'note', 'created_at'):
        if pin.get(key):
            print(f"  {key}: {pin[key]}")
    names = ', '.join(c['name'] for c in pin['categories']) or '-'
    print(f"  categories: {names}")
    meta = pin['context_meta']
    if meta:
        slots = ' | '.join(meta.get(f'slot{i}') or '-' for i in range(1, 5))
        print(f"  context: {slots}")
    return 0


def cmd_check(mm: MemoryMap, args) -> int:
    if mm.is_within_registration_boundary(args.lat, args.lng):
        print(f"{Fore.GREEN}Inside the {mm.city.name} registration boundary")
        return 0
    print(f"{Fore.YELLOW}Outside the {mm.city.name} registration boundary")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    init(autoreset=True)
    parser = argparse.ArgumentParser(
        description='Inspect a memorymap store without modifying it',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('\n', 2)[2],
    )
    parser.add_argument(
        '--config', '-c',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    p_pins = sub.add_parser('pins', help='List pins')
    p_pins.add_argument('--category', default=None, help='Only pins in this category ID')
    p_pins.set_defaults(func=cmd_pins)

    sub.add_parser('categories', help='List categories with pin counts').set_defaults(
        func=cmd_categories)

    p_pin = sub.add_parser('pin', help='Show one pin')
    p_pin.add_argument('pin_id')
    p_pin.set_defaults(func=cmd_pin)

    p_check = sub.add_parser('check', help='Check a coordinate against the boundary')
    p_check.add_argument('lat', type=float)
    p_check.add_argument('lng', type=float)
    p_check.set_defaults(func=cmd_check)

    args = parser.parse_args(argv)
    try:
        with MemoryMap(args.config) as mm:
            return args.func(mm, args)
    except MemoryMapError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"{Fore.RED}Error: {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
