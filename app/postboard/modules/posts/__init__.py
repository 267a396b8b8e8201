"""
Posts module.

- Public listing of every post with its author
- Create for signed-in users
- Edit/update/delete restricted to the post's owner
"""
