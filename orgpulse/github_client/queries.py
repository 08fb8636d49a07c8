"""GraphQL documents used by the fetcher."""

ORGANIZATION_REPOSITORIES_QUERY = """
query ($org: String!, $cursor: String, $pageSize: Int!) {
  organization(login: $org) {
    repositories(first: $pageSize, after: $cursor, orderBy: {field: PUSHED_AT, direction: DESC}) {
      pageInfo { hasNextPage endCursor }
      nodes {
        id name description url createdAt updatedAt pushedAt
        stargazerCount forkCount
        issues(states: [OPEN]) { totalCount }
        isPrivate isArchived isFork
        defaultBranchRef { name }
        primaryLanguage { name }
        repositoryTopics(first: 10) { nodes { topic { name } } }
        licenseInfo { name }
      }
    }
  }
  rateLimit { limit remaining resetAt }
}
"""

REPOSITORY_ISSUES_QUERY = """
query ($owner: String!, $name: String!, $cursor: String, $pageSize: Int!) {
  repository(owner: $owner, name: $name) {
    issues(first: $pageSize, after: $cursor, states: [OPEN, CLOSED], orderBy: {field: CREATED_AT, direction: DESC}) {
      pageInfo { hasNextPage endCursor }
      nodes {
        id number title state createdAt updatedAt closedAt
        author { login }
        labels(first: 5) { nodes { name } }
      }
    }
  }
  rateLimit { limit remaining resetAt }
}
"""
