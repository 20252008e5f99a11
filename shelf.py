#!/usr/bin/env python3
"""Bookshelf CLI - personal library on top of the Google Books catalog."""
import argparse
import asyncio
import csv
import sys
import json
from tabulate import tabulate
from bookshelf.async_client import AsyncGoogleBooksClient, LatestSearch
from bookshelf.client import GoogleBooksClient
from bookshelf.config import Config
from bookshelf.filters import ALL, VIEWS, VIEW_BOOKS, shelf_counts
from bookshelf.models import ShelfStatus
from bookshelf.service import Bookshelf
from bookshelf.storage import StorageError, open_storage
import logging

logger = logging.getLogger(__name__)

STATUS_CHOICES = [s.value for s in ShelfStatus]


def setup_logging(config: Config):
    """Configure root logging once for the CLI."""
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def make_client(config: Config) -> GoogleBooksClient:
    return GoogleBooksClient(
        api_key=config.GOOGLE_BOOKS_API_KEY,
        timeout=config.DEFAULT_TIMEOUT,
        max_retries=config.DEFAULT_MAX_RETRIES
    )


def truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def display_items(items, format_type: str):
    """Display catalog items in specified format."""
    if format_type == "table":
        headers = ["ID", "Title", "Authors", "Pages", "Categories"]
        rows = [
            [
                item.id,
                truncate(item.title, 50),
                truncate(item.authors_str, 30),
                item.page_count or "N/A",
                truncate(item.categories_str, 30)
            ]
            for item in items
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))
    
    elif format_type == "json":
        print(json.dumps([
            {
                "id": item.id,
                "title": item.title,
                "authors": item.authors,
                "pageCount": item.page_count,
                "categories": item.categories,
                "thumbnail": item.thumbnail,
                "language": item.language
            }
            for item in items
        ], indent=2, ensure_ascii=False))
    
    elif format_type == "compact":
        for i, item in enumerate(items, 1):
            print(f"{i}. {item.title} - {item.authors_str} [{item.id}]")


def display_books(books, format_type: str):
    """Display library books in specified format."""
    if format_type == "table":
        headers = ["ID", "Title", "Authors", "Shelf", "Progress", "Rating", "Comic"]
        rows = [
            [
                book.id,
                truncate(book.title, 50),
                truncate(book.authors_str, 30),
                book.status.value,
                f"{book.current_page}/{book.page_count} ({book.progress_percent}%)",
                "*" * book.rating or "-",
                "yes" if book.is_comic else ""
            ]
            for book in books
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))
    
    elif format_type == "json":
        print(json.dumps([book.to_dict() for book in books], indent=2, ensure_ascii=False))
    
    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.authors_str} ({book.status.value})")


def search_catalog(args, config: Config, shelf: Bookshelf):
    """Search the catalog and show which results are already shelved."""
    if args.use_async:
        items = asyncio.run(search_catalog_async(args.query, config))
    else:
        with make_client(config) as client:
            items = client.search(args.query, max_results=args.limit)
    
    items = items[:args.limit]
    if not items:
        print("No books found.")
        return
    
    owned = {book.id for book in shelf.get_library()}
    logger.info(f"Found {len(items)} books ({sum(i.id in owned for i in items)} already in library)")
    display_items(items, args.format)


async def search_catalog_async(query: str, config: Config):
    async with AsyncGoogleBooksClient(
        api_key=config.GOOGLE_BOOKS_API_KEY,
        timeout=config.DEFAULT_TIMEOUT
    ) as client:
        return await LatestSearch(client).search(query) or []


def add_book(args, config: Config, shelf: Bookshelf):
    """Shelve a catalog volume by id."""
    with make_client(config) as client:
        item = client.get_by_id(args.volume_id)
    
    if item is None:
        logger.error(f"No catalog details available for {args.volume_id}")
        return 1
    
    book = shelf.add_to_shelf(item, ShelfStatus(args.status))
    print(f"✅ {book.title} is on your '{book.status.value}' shelf")


def report(book, message: str):
    if book is None:
        print("Book not found in your library.")
        return 1
    print(message.format(book=book))


def list_books(args, config: Config, shelf: Bookshelf):
    """List a shelf, comics shelf or collection."""
    view = "collections" if args.collection else args.view
    books = shelf.shelf(view, args.status, args.collection)
    
    if view != "collections":
        counts = shelf_counts(shelf.shelf(view))
        print("  ".join(f"{name}: {count}" for name, count in counts.items()))
    
    if not books:
        print("Nothing on this shelf yet.")
        return
    display_books(books, args.format)


def catalog_item_for(shelf: Bookshelf, book_id):
    """Catalog details for a book that is not shelved yet, so it can be added."""
    if not book_id or shelf.get_book(book_id) is not None:
        return None
    
    item = shelf.catalog.get_by_id(book_id)
    if item is None:
        logger.warning(f"No catalog details for {book_id}; keeping the reference only")
    return item


def remove_book(args, config: Config, shelf: Bookshelf):
    """Remove a book and its collection memberships."""
    book = shelf.get_book(args.book_id)
    shelf.remove(args.book_id)
    return report(book, "Removed '{book.title}' from your library")


def manage_collections(args, config: Config, shelf: Bookshelf):
    """Create, delete, toggle and list collections."""
    if args.collection_command == "create":
        collection = shelf.create_collection(
            args.name, book_id=args.book, item=catalog_item_for(shelf, args.book)
        )
        print(f"✅ Created collection '{collection.name}' ({collection.id})")
    
    elif args.collection_command == "delete":
        shelf.delete_collection(args.collection_id)
        print(f"Deleted collection {args.collection_id}")
    
    elif args.collection_command == "toggle":
        if shelf.collections.get(args.collection_id) is None:
            print("Collection not found.")
            return 1
        collection = shelf.toggle_collection(
            args.collection_id, args.book_id, item=catalog_item_for(shelf, args.book_id)
        )
        if collection is None:
            print("Collection not found.")
            return 1
        state = "added to" if args.book_id in collection.book_ids else "removed from"
        print(f"Book {args.book_id} {state} '{collection.name}'")
    
    else:
        rows = [[c.id, c.name, len(c.book_ids), c.created_at] for c in shelf.get_collections()]
        print("\n" + tabulate(rows, headers=["ID", "Name", "Books", "Created"], tablefmt="grid"))


def show_stats(args, config: Config, shelf: Bookshelf):
    """Show reading statistics."""
    stats = shelf.get_stats()
    
    print("\n" + "=" * 50)
    print("READING STATISTICS")
    print("=" * 50)
    print(f"Total books:    {stats.total_books}")
    print(f"Reading:        {stats.reading}")
    print(f"Read:           {stats.read}")
    print(f"Want to read:   {stats.want_to_read}")
    print(f"Abandoned:      {stats.abandoned}")
    print(f"Pages read:     {stats.pages_read}")
    print(f"Average rating: {stats.average_rating:.1f}")
    print(f"Completed:      {stats.completion_percent}%")
    print("=" * 50)
    
    categories = shelf.top_categories(args.top or config.TOP_CATEGORIES)
    if categories:
        print("\n" + tabulate(categories, headers=["Category", "Books"], tablefmt="grid"))
    print()


def export_data(args, config: Config, shelf: Bookshelf):
    """Export the library."""
    books = shelf.get_library()
    
    if args.format == "json":
        data = {
            "books": [book.to_dict() for book in books],
            "collections": [c.to_dict() for c in shelf.get_collections()]
        }
        
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            logger.info(f"✅ Exported {len(books)} books to {args.output}")
        else:
            print(json.dumps(data, indent=2, ensure_ascii=False))
    
    elif args.format == "csv":
        output_file = args.output or "library_export.csv"
        with open(output_file, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(["ID", "Title", "Authors", "Status", "Pages", "Current Page",
                             "Rating", "Categories", "Date Added", "Date Finished"])
            
            for book in books:
                writer.writerow([
                    book.id,
                    book.title,
                    book.authors_str,
                    book.status.value,
                    book.page_count,
                    book.current_page,
                    book.rating,
                    book.categories_str,
                    book.date_added,
                    book.date_finished or ""
                ])
        
        logger.info(f"✅ Exported {len(books)} books to {output_file}")


def recommend(args, config: Config, shelf: Bookshelf):
    """Suggest books related to what you read."""
    items = shelf.recommend(limit=args.limit or config.RECOMMENDATION_LIMIT)
    if not items:
        print("No recommendations right now.")
        return
    display_items(items, args.format)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bookshelf - track what you read",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Find a book and put it on a shelf
  %(prog)s search "the left hand of darkness"
  %(prog)s add zyTCAlFPjgYC --status reading
  
  # Track progress
  %(prog)s progress zyTCAlFPjgYC 120
  
  # Group books
  %(prog)s collection create "Hainish cycle" --book zyTCAlFPjgYC
  
  # Show statistics
  %(prog)s stats --top 5
        """
    )
    
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    formats = ["table", "json", "compact"]
    
    search_parser = subparsers.add_parser("search", help="Search the catalog")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=Config.SEARCH_MAX_RESULTS, help="Max results (default: 20)")
    search_parser.add_argument("--format", choices=formats, default="table", help="Output format")
    search_parser.add_argument("--async", dest="use_async", action="store_true", help="Use async client")
    
    add_parser = subparsers.add_parser("add", help="Add a catalog volume to a shelf")
    add_parser.add_argument("volume_id", help="Catalog volume id")
    add_parser.add_argument("--status", choices=STATUS_CHOICES, default=ShelfStatus.WANT_TO_READ.value)
    
    status_parser = subparsers.add_parser("status", help="Move a book to another shelf")
    status_parser.add_argument("book_id")
    status_parser.add_argument("status", choices=STATUS_CHOICES)
    status_parser.add_argument("--reason", help="Why the book was abandoned")
    
    progress_parser = subparsers.add_parser("progress", help="Record the current page")
    progress_parser.add_argument("book_id")
    progress_parser.add_argument("page", type=int)
    
    rate_parser = subparsers.add_parser("rate", help="Rate a book (0 clears)")
    rate_parser.add_argument("book_id")
    rate_parser.add_argument("rating", type=int, choices=range(0, 6))
    
    note_parser = subparsers.add_parser("note", help="Replace a book's notes")
    note_parser.add_argument("book_id")
    note_parser.add_argument("text")
    
    comic_parser = subparsers.add_parser("comic", help="Toggle the comic flag")
    comic_parser.add_argument("book_id")
    
    remove_parser = subparsers.add_parser("remove", help="Remove a book from the library")
    remove_parser.add_argument("book_id")
    
    list_parser = subparsers.add_parser("list", help="List a shelf")
    list_parser.add_argument("--view", choices=VIEWS, default=VIEW_BOOKS)
    list_parser.add_argument("--status", choices=[ALL] + STATUS_CHOICES, default=ALL)
    list_parser.add_argument("--collection", help="Show a collection instead")
    list_parser.add_argument("--format", choices=formats, default="table")
    
    collection_parser = subparsers.add_parser("collection", help="Manage collections")
    collection_sub = collection_parser.add_subparsers(dest="collection_command")
    create_parser = collection_sub.add_parser("create")
    create_parser.add_argument("name")
    create_parser.add_argument("--book", help="First book in the collection")
    delete_parser = collection_sub.add_parser("delete")
    delete_parser.add_argument("collection_id")
    toggle_parser = collection_sub.add_parser("toggle")
    toggle_parser.add_argument("collection_id")
    toggle_parser.add_argument("book_id")
    collection_sub.add_parser("list")
    
    stats_parser = subparsers.add_parser("stats", help="Show reading statistics")
    stats_parser.add_argument("--top", type=int, help="Number of top categories")
    
    export_parser = subparsers.add_parser("export", help="Export the library")
    export_parser.add_argument("--format", choices=["json", "csv"], default="json", help="Export format")
    export_parser.add_argument("--output", help="Output file (default: stdout for JSON)")
    
    recommend_parser = subparsers.add_parser("recommend", help="Suggest related books")
    recommend_parser.add_argument("--limit", type=int)
    recommend_parser.add_argument("--format", choices=formats, default="compact")
    
    return parser


COMMANDS = {
    "search": search_catalog,
    "add": add_book,
    "status": lambda a, c, s: report(
        s.set_status(a.book_id, a.status, a.reason), "Moved '{book.title}' to {book.status.value}"),
    "progress": lambda a, c, s: report(
        s.update_progress(a.book_id, a.page),
        "'{book.title}': page {book.current_page}/{book.page_count} ({book.status.value})"),
    "rate": lambda a, c, s: report(s.rate(a.book_id, a.rating), "Rated '{book.title}' {book.rating}/5"),
    "note": lambda a, c, s: report(s.set_notes(a.book_id, a.text), "Saved notes for '{book.title}'"),
    "comic": lambda a, c, s: report(s.toggle_comic(a.book_id), "'{book.title}' comic: {book.is_comic}"),
    "remove": remove_book,
    "list": list_books,
    "collection": manage_collections,
    "stats": show_stats,
    "export": export_data,
    "recommend": recommend,
}


def main(argv=None, config: Config = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    
    if not args.command:
        parser.print_help()
        return 1
    
    config = config or Config()
    setup_logging(config)
    
    try:
        with open_storage(config) as storage:
            catalog = make_client(config)
            shelf = Bookshelf(storage, catalog=catalog, default_language=config.DEFAULT_LANGUAGE)
            try:
                return COMMANDS[args.command](args, config, shelf) or 0
            finally:
                catalog.close()
    
    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        return 0
    except (StorageError, ValueError) as e:
        logger.error(f"❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
