"""Recipe data access. Centres around the `RecipeCatalog`.

Two sources feed it:

- A third-party search provider, reached over HTTP. Its trending and latest
  lists are what the home screen shows.
- The user's own recipes, kept in a document collection (Firestore in
  production, SQLite locally).

Both are normalised into one `Recipe` shape before anything leaves this
package, so screens never care where a recipe came from.
"""
