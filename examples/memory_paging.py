"""
Example: paging through an in-memory collection.

Shows forward/backward navigation, the corrective jumps at both ends,
filtering and resizing the page.
"""

import logging

from dynapage import MemoryCollection, Page, Paginator

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

articles = MemoryCollection(
    {"id": f"a{i}", "rank": i, "section": "tech" if i % 3 else "sport"} for i in range(1, 13)
)


def show(page: Page) -> None:
    visible = ", ".join(item.id for item in page.visible_items)
    nav = page.navigation
    print(
        f"[{page.action.value:>7}] {visible:<24} "
        f"first={nav.first_enabled} prev={nav.previous_enabled} "
        f"next={nav.next_enabled} last={nav.last_enabled}"
    )


paginator = Paginator(articles, page_size=5, sort=[("rank", "asc")])
paginator.subscribe(show, on_error=lambda error: print("query failed:", error))

print("\n--- forward ---")
paginator.next()
paginator.next()  # runs past the end, lands on the last page

print("\n--- backward ---")
paginator.previous()
paginator.previous()  # runs past the start, lands on the first page

print("\n--- filter and page size ---")
paginator.set_filter([("section", "==", "tech")])
paginator.set_page_size(3)

print("\n--- stall while data loads, then resume ---")
paginator.stall()
articles.add({"id": "a13", "rank": 0, "section": "tech"})
paginator.resume()
